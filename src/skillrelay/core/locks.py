"""Per-conversation async locking with LRU eviction."""

from __future__ import annotations

import asyncio
import contextvars
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

# Conversations whose lock the current execution context holds. Child tasks
# created with asyncio.gather() inherit the set and may re-enter.
_held_conversations: contextvars.ContextVar[frozenset[str]] = contextvars.ContextVar(
    "_conversation_locks_held", default=frozenset()
)


class ConversationLockManager(ABC):
    """Abstract base for per-conversation turn serialization.

    Two turns for the same conversation must never run at the same time.
    The library ships with ``InMemoryLockManager`` for single-process
    deployments; multi-process hosts should provide an implementation
    backed by Redis, Postgres advisory locks, or similar.

    Implementations must be reentrant within one execution context.
    """

    @abstractmethod
    @asynccontextmanager
    async def locked(self, conversation_id: str) -> AsyncIterator[None]:
        """Acquire an exclusive lock for *conversation_id*."""
        yield  # pragma: no cover


class InMemoryLockManager(ConversationLockManager):
    """In-process per-conversation asyncio locks with LRU eviction."""

    def __init__(self, max_locks: int = 1024) -> None:
        self._locks: OrderedDict[str, asyncio.Lock] = OrderedDict()
        self._refcounts: dict[str, int] = {}
        self._max_locks = max_locks

    def _get_lock(self, conversation_id: str) -> asyncio.Lock:
        if conversation_id in self._locks:
            self._locks.move_to_end(conversation_id)
            self._refcounts[conversation_id] = self._refcounts.get(conversation_id, 0) + 1
            return self._locks[conversation_id]

        lock = asyncio.Lock()
        self._locks[conversation_id] = lock
        self._refcounts[conversation_id] = 1
        self._evict()
        return lock

    def _release_ref(self, conversation_id: str) -> None:
        count = self._refcounts.get(conversation_id, 0) - 1
        if count <= 0:
            self._refcounts.pop(conversation_id, None)
        else:
            self._refcounts[conversation_id] = count

    def _evict(self) -> None:
        if len(self._locks) <= self._max_locks:
            return
        stale = [
            key
            for key, lock in self._locks.items()
            if not lock.locked() and self._refcounts.get(key, 0) <= 0
        ]
        for key in stale[: len(self._locks) - self._max_locks]:
            self._locks.pop(key)
            self._refcounts.pop(key, None)

    @asynccontextmanager
    async def locked(self, conversation_id: str) -> AsyncIterator[None]:
        """Acquire the lock for a conversation (reentrant via ContextVar)."""
        held = _held_conversations.get()
        if conversation_id in held:
            yield
            return

        lock = self._get_lock(conversation_id)
        try:
            async with lock:
                token = _held_conversations.set(held | frozenset({conversation_id}))
                try:
                    yield
                finally:
                    _held_conversations.reset(token)
        finally:
            self._release_ref(conversation_id)

    @property
    def size(self) -> int:
        """Number of tracked conversation locks."""
        return len(self._locks)
