"""Conversation-scoped state with per-turn caching and explicit saves."""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from skillrelay.core.errors import StateStoreError
from skillrelay.core.turn_context import TurnContext
from skillrelay.store.base import ETAG_KEY, Storage
from skillrelay.telemetry.base import Attr, SpanKind, TelemetryProvider
from skillrelay.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("skillrelay.store")

_CACHE_KEY = "skillrelay.ConversationState"


def _compute_hash(state: dict[str, Any]) -> str:
    return json.dumps(state, sort_keys=True, default=str)


@dataclass
class _CachedState:
    state: dict[str, Any] = field(default_factory=dict)
    hash: str = ""
    e_tag: str | None = None

    def __post_init__(self) -> None:
        if not self.hash:
            self.hash = _compute_hash(self.state)

    @property
    def is_changed(self) -> bool:
        return _compute_hash(self.state) != self.hash


class ConversationState:
    """Key/value state scoped to one conversation.

    The record is loaded once per turn into ``TurnContext.turn_state`` and
    mutated in memory by ``set``/``delete_property``. Nothing reaches the
    backing :class:`Storage` until ``save_changes`` is called; with
    ``force=False`` the write is skipped when nothing changed since the
    last load or save.

    Values must be JSON-serializable. Storage failures surface as
    :class:`StateStoreError`.
    """

    def __init__(
        self,
        storage: Storage,
        *,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._storage = storage
        self._telemetry = telemetry or NoopTelemetryProvider()

    @staticmethod
    def get_storage_key(context: TurnContext) -> str:
        activity = context.activity
        if not activity.channel_id:
            raise ValueError("ConversationState: activity.channel_id is required")
        if not activity.conversation_id:
            raise ValueError("ConversationState: activity.conversation.id is required")
        return f"{activity.channel_id}/conversations/{activity.conversation_id}"

    async def load(self, context: TurnContext, force: bool = False) -> None:
        """Read the record from storage unless it is already cached."""
        cached: _CachedState | None = context.turn_state.get(_CACHE_KEY)
        if cached is not None and not force:
            return

        key = self.get_storage_key(context)
        with self._telemetry.span(
            SpanKind.STATE_LOAD,
            "state.load",
            conversation_id=context.activity.conversation_id,
        ):
            async with self._storage_errors("read", key):
                items = await self._storage.read([key])
        item = dict(items.get(key, {}))
        e_tag = item.pop(ETAG_KEY, None)
        context.turn_state[_CACHE_KEY] = _CachedState(state=item, e_tag=e_tag)

    async def get(self, context: TurnContext, name: str, default: Any = None) -> Any:
        """Return a copy of property *name*, or *default* when unset."""
        cached = await self._cached(context)
        if name not in cached.state:
            return default
        return copy.deepcopy(cached.state[name])

    async def set(self, context: TurnContext, name: str, value: Any) -> None:
        cached = await self._cached(context)
        cached.state[name] = copy.deepcopy(value)

    async def delete_property(self, context: TurnContext, name: str) -> None:
        cached = await self._cached(context)
        cached.state.pop(name, None)

    async def clear(self, context: TurnContext) -> None:
        """Empty the cached record; the next ``save_changes`` persists it."""
        cached = await self._cached(context)
        cached.state.clear()

    async def save_changes(self, context: TurnContext, force: bool = False) -> None:
        """Persist the cached record if it changed, or unconditionally with *force*."""
        cached: _CachedState | None = context.turn_state.get(_CACHE_KEY)
        if cached is None:
            return
        if not force and not cached.is_changed:
            return

        key = self.get_storage_key(context)
        item = dict(cached.state)
        if cached.e_tag is not None:
            item[ETAG_KEY] = cached.e_tag
        with self._telemetry.span(
            SpanKind.STATE_SAVE,
            "state.save",
            conversation_id=context.activity.conversation_id,
            attributes={Attr.STATE_FORCE: force},
        ):
            async with self._storage_errors("write", key):
                etags = await self._storage.write({key: item})
        cached.hash = _compute_hash(cached.state)
        cached.e_tag = etags.get(key, cached.e_tag)

    async def delete(self, context: TurnContext) -> None:
        """Drop the whole record, both cached and persisted."""
        context.turn_state[_CACHE_KEY] = _CachedState()
        key = self.get_storage_key(context)
        with self._telemetry.span(
            SpanKind.STATE_DELETE,
            "state.delete",
            conversation_id=context.activity.conversation_id,
        ):
            async with self._storage_errors("delete", key):
                await self._storage.delete([key])
        logger.info("Deleted conversation state", extra={"storage_key": key})

    async def _cached(self, context: TurnContext) -> _CachedState:
        await self.load(context)
        cached: _CachedState = context.turn_state[_CACHE_KEY]
        return cached

    @asynccontextmanager
    async def _storage_errors(self, operation: str, key: str) -> AsyncIterator[None]:
        try:
            yield
        except StateStoreError:
            raise
        except Exception as exc:
            msg = f"Storage {operation} failed for {key!r}: {exc}"
            raise StateStoreError(msg) from exc
