"""Abstract base class for keyed state storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

ETAG_KEY = "e_tag"
"""Item field carrying the optimistic-concurrency tag.

A write whose item carries an ``e_tag`` other than ``"*"`` must fail with
:class:`~skillrelay.core.errors.StateStoreError` when the stored tag differs.
Items without a tag (or with ``"*"``) are written unconditionally.
"""


class Storage(ABC):
    """Key/value storage for conversation state and skill conversation IDs.

    Implement this ABC to plug in any storage backend (SQL, Redis, Cosmos,
    etc.). The library ships with `InMemoryStorage` for development and
    testing. Implementations must make ``write`` atomic per key.
    """

    @abstractmethod
    async def read(self, keys: list[str]) -> dict[str, dict[str, Any]]:
        """Return stored items for *keys*; missing keys are omitted."""
        ...

    @abstractmethod
    async def write(self, changes: dict[str, dict[str, Any]]) -> dict[str, str]:
        """Store items, honouring ``e_tag`` optimistic concurrency.

        Returns the new eTag of every written key.
        """
        ...

    @abstractmethod
    async def delete(self, keys: list[str]) -> None:
        """Remove items. Deleting a missing key is not an error."""
        ...
