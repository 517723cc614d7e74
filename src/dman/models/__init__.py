from __future__ import annotations

from dman.models.cache import CacheEntry
from dman.models.fetch import FetchOutcome, OutcomeKind
from dman.models.key import Key

__all__ = [
    # key
    "Key",
    # cache
    "CacheEntry",
    # fetch
    "FetchOutcome",
    "OutcomeKind",
]
