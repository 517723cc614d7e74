from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dman.errors import FetchError


class OutcomeKind(StrEnum):
    SUCCESS = "success"
    SKIPPABLE = "skippable"  # Try the next candidate
    FATAL = "fatal"  # Abort the whole fetch


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching a single candidate URL."""

    kind: OutcomeKind
    url: str
    bytes_written: int = 0
    error: FetchError | None = None

    @classmethod
    def success(cls, url: str, bytes_written: int) -> FetchOutcome:
        return cls(OutcomeKind.SUCCESS, url, bytes_written)

    @classmethod
    def skippable(cls, url: str, error: FetchError) -> FetchOutcome:
        return cls(OutcomeKind.SKIPPABLE, url, 0, error)

    @classmethod
    def fatal(cls, url: str, error: FetchError, bytes_written: int = 0) -> FetchOutcome:
        return cls(OutcomeKind.FATAL, url, bytes_written, error)
