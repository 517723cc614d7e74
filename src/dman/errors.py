from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    CACHE_NOT_FOUND = "CACHE_NOT_FOUND"
    CACHE_IO_ERROR = "CACHE_IO_ERROR"
    FETCH_TRANSIENT = "FETCH_TRANSIENT"
    FETCH_FATAL = "FETCH_FATAL"
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    RENDER_FAILED = "RENDER_FAILED"


class DmanError(Exception):
    """Base for every expected failure condition.

    Carries a machine-readable ``code`` so callers branch on the kind of
    failure rather than on message text. Caught by the CLI and turned into
    a one-line diagnostic.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable


class CacheError(DmanError):
    """Raised by the disk cache."""


class CacheNotFoundError(CacheError):
    def __init__(self, message: str = "cache: page not found") -> None:
        super().__init__(
            code=ErrorCode.CACHE_NOT_FOUND,
            message=message,
            recoverable=True,
        )


class CacheIOError(CacheError):
    def __init__(self, message: str) -> None:
        super().__init__(
            code=ErrorCode.CACHE_IO_ERROR,
            message=message,
            suggestion="Check permissions and free space in the cache directory.",
            recoverable=True,
        )


class FetchError(DmanError):
    """Raised by the fetcher.

    Skippable failures (``FETCH_TRANSIENT``, ``PAGE_NOT_FOUND``) let the
    fetcher move on to the next candidate URL. ``FETCH_FATAL`` means the sink
    already holds partial content and nothing else may be tried.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        suggestion: str = "",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            suggestion=suggestion,
            recoverable=code != ErrorCode.FETCH_FATAL,
        )
        self.url = url
        self.status_code = status_code

    @property
    def fatal(self) -> bool:
        return self.code == ErrorCode.FETCH_FATAL

    @property
    def is_not_found(self) -> bool:
        return self.code == ErrorCode.PAGE_NOT_FOUND


class RenderError(DmanError):
    """Raised when the page cannot be typeset or shown in the pager."""

    def __init__(self, message: str, suggestion: str = "") -> None:
        super().__init__(
            code=ErrorCode.RENDER_FAILED,
            message=message,
            suggestion=suggestion,
        )
