"""In-memory implementation of Storage."""

from __future__ import annotations

import copy
from typing import Any

from skillrelay.core.errors import StateStoreError
from skillrelay.store.base import ETAG_KEY, Storage


class InMemoryStorage(Storage):
    """Dict-based in-memory storage for development and testing.

    Each write bumps a per-store eTag counter. There is no ``await``
    between the eTag check and the assignment, so writes are atomic per
    key within a single event loop.
    """

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._items: dict[str, dict[str, Any]] = copy.deepcopy(initial) if initial else {}
        self._etag = 0

    async def read(self, keys: list[str]) -> dict[str, dict[str, Any]]:
        return {key: copy.deepcopy(self._items[key]) for key in keys if key in self._items}

    async def write(self, changes: dict[str, dict[str, Any]]) -> dict[str, str]:
        etags: dict[str, str] = {}
        for key, item in changes.items():
            new_etag = item.get(ETAG_KEY)
            current = self._items.get(key)
            if (
                current is not None
                and new_etag not in (None, "*")
                and new_etag != current.get(ETAG_KEY)
            ):
                msg = f"eTag conflict for key {key!r}: expected {current.get(ETAG_KEY)!r}"
                raise StateStoreError(msg)
            if current is None and new_etag not in (None, "*"):
                msg = f"eTag conflict for key {key!r}: item was deleted"
                raise StateStoreError(msg)
            self._etag += 1
            stored = copy.deepcopy(item)
            stored[ETAG_KEY] = str(self._etag)
            self._items[key] = stored
            etags[key] = stored[ETAG_KEY]
        return etags

    async def delete(self, keys: list[str]) -> None:
        for key in keys:
            self._items.pop(key, None)

    @property
    def size(self) -> int:
        """Number of stored items."""
        return len(self._items)
