"""On-disk manual page cache.

One file per key at ``<root>/<dist>/<lang>/<page>``, holding the exact bytes
of the last successful download. The file's mtime is the staleness clock.

Writes go to a temporary file in the destination directory and are renamed
into place, so a reader that already holds the old file keeps seeing its
complete content and no reader ever observes a half-written page.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from dman.config import _DEFAULT_CACHE_DIR
from dman.errors import CacheIOError, CacheNotFoundError
from dman.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import BinaryIO

    from dman.models.key import Key

log = structlog.get_logger()


class Cache:
    """Filesystem-backed page cache implementing CacheProtocol."""

    def __init__(
        self,
        root: Path | str | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root) if root else Path(_DEFAULT_CACHE_DIR)
        self._clock = clock

    def path(self, key: Key) -> Path:
        return self.root / key.dist / key.lang / key.page

    def get(self, key: Key, ttl: timedelta) -> CacheEntry:
        """Open the cached page for ``key``.

        Raises ``CacheNotFoundError`` when nothing is cached and
        ``CacheIOError`` on any other filesystem failure. An expired entry is
        returned with ``stale=True``; a non-positive ``ttl`` never expires.
        """
        p = self.path(key)
        try:
            f = p.open("rb")
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise CacheNotFoundError() from exc
        except OSError as exc:
            raise CacheIOError(f"cache: {exc}") from exc

        try:
            mtime = os.fstat(f.fileno()).st_mtime
        except OSError as exc:
            f.close()
            raise CacheIOError(f"cache: {exc}") from exc

        entry = CacheEntry(
            stream=f,
            path=p,
            modified_at=datetime.fromtimestamp(mtime, UTC),
        )
        if ttl <= timedelta(0):
            return entry

        age = self._clock() - mtime
        entry.stale = age > ttl.total_seconds()
        log.debug("cache_lookup", path=str(p), age_seconds=round(age, 3), stale=entry.stale)
        return entry

    def put(self, key: Key, source: BinaryIO) -> None:
        """Replace the cached page for ``key`` with the contents of ``source``."""
        p = self.path(key)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=p.parent, prefix=f".{key.page}.", suffix=".tmp")
        except OSError as exc:
            raise CacheIOError(f"cache: {exc}") from exc

        tmp = Path(tmp_name)
        error: OSError | None = None
        f = os.fdopen(fd, "wb")
        try:
            shutil.copyfileobj(source, f)
            f.flush()
            os.fsync(f.fileno())
        except OSError as exc:
            error = exc
        finally:
            try:
                f.close()
            except OSError as exc:
                # The copy error, if any, takes precedence.
                if error is None:
                    error = exc

        if error is None:
            try:
                os.replace(tmp, p)
            except OSError as exc:
                error = exc

        if error is not None:
            tmp.unlink(missing_ok=True)
            raise CacheIOError(f"cache: {error}") from error

        log.debug("cache_put", path=str(p))
