from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO


@dataclass
class CacheEntry:
    """An open cached page.

    ``stream`` is usable even when ``stale`` is True; callers must check the
    flag rather than the presence of a stream. Closing ``stream`` is the
    caller's job.
    """

    stream: BinaryIO
    path: Path
    modified_at: datetime
    stale: bool = False

    def close(self) -> None:
        self.stream.close()
