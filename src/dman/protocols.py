"""Protocol interfaces for swappable components.

The Retriever references these protocols, not the concrete implementations,
so tests can drive it with lightweight in-memory doubles.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import timedelta
    from typing import BinaryIO

    from dman.models.cache import CacheEntry
    from dman.models.key import Key


class CacheProtocol(Protocol):
    """Interface for the page cache backend."""

    def get(self, key: Key, ttl: timedelta) -> CacheEntry: ...

    def put(self, key: Key, source: BinaryIO) -> None: ...


class FetcherProtocol(Protocol):
    """Interface for the remote page fetcher."""

    async def fetch(self, key: Key, sink: BinaryIO) -> str: ...
