"""Get-or-refresh orchestration.

Ties the cache and the fetcher together: a fresh cache hit is served without
touching the network; a miss or stale entry triggers a download that is
written back to the cache; a failed download falls back to the stale entry
when there is one.
"""

from __future__ import annotations

import tempfile
from typing import TYPE_CHECKING

import structlog

from dman.errors import CacheError, CacheNotFoundError, FetchError

if TYPE_CHECKING:
    from datetime import timedelta
    from typing import BinaryIO

    from dman.models.cache import CacheEntry
    from dman.models.key import Key
    from dman.protocols import CacheProtocol, FetcherProtocol


class Retriever:
    """Serves manual pages from the cache, refreshing from the network."""

    def __init__(
        self,
        cache: CacheProtocol,
        fetcher: FetcherProtocol,
        *,
        ttl: timedelta,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._ttl = ttl

    async def get(self, key: Key) -> BinaryIO:
        """Return an open, rewound stream holding the page for ``key``.

        Raises FetchError when nothing is cached and the download fails.
        """
        log = structlog.get_logger().bind(page=key.page, dist=key.dist, lang=key.lang)

        entry: CacheEntry | None = None
        try:
            entry = self._cache.get(key, self._ttl)
        except CacheNotFoundError:
            log.info("cache_miss")
        except CacheError as exc:
            log.warning("cache_read_error", error=exc.message)

        if entry is not None and not entry.stale:
            log.info("cache_hit", stale=False)
            return entry.stream

        if entry is not None:
            log.info("cache_hit", stale=True)

        try:
            fresh = await self.refresh(key)
        except FetchError as exc:
            if entry is None:
                raise
            log.warning(
                "falling_back_to_stale_cache",
                error=exc.message,
                code=exc.code,
                cached_at=entry.modified_at.isoformat(),
            )
            return entry.stream
        except BaseException:
            if entry is not None:
                entry.close()
            raise

        # Superseded by the fresh download.
        if entry is not None:
            entry.close()
        return fresh

    async def refresh(self, key: Key) -> BinaryIO:
        """Download ``key`` and store it in the cache.

        The returned stream is an anonymous temporary file; a cache write
        failure is logged and does not affect it.
        """
        log = structlog.get_logger().bind(page=key.page, dist=key.dist, lang=key.lang)
        sink = tempfile.TemporaryFile()
        try:
            await self._fetcher.fetch(key, sink)
            sink.seek(0)
            try:
                self._cache.put(key, sink)
            except CacheError as exc:
                log.warning("cache_write_error", error=exc.message)
            sink.seek(0)
        except BaseException:
            sink.close()
            raise
        return sink
