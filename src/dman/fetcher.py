"""Remote manual page fetcher.

A page can live at several locations on the remote server: with or without
the distribution prefix, with the user's language, the fallback language,
or no language at all. The Fetcher tries them in order of specificity and
streams the first hit into a caller-supplied sink.

The Fetcher receives an httpx.AsyncClient via constructor injection — the
caller owns the client lifecycle.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, cast

import httpx
import structlog

from dman.config import FetchSettings
from dman.errors import ErrorCode, FetchError
from dman.models.fetch import FetchOutcome, OutcomeKind

if TYPE_CHECKING:
    from typing import BinaryIO

    from dman.models.key import Key

log = structlog.get_logger()

_DEFAULTS = FetchSettings()


def build_http_client(settings: FetchSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once per process."""
    settings = settings or _DEFAULTS
    return httpx.AsyncClient(
        # The server answers language-less paths with a redirect to the
        # canonical location.
        follow_redirects=True,
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=4,
            max_keepalive_connections=2,
        ),
    )


def build_candidate_urls(
    key: Key,
    *,
    server: str = _DEFAULTS.server,
    fallback_lang: str = _DEFAULTS.fallback_lang,
    suffix: str = _DEFAULTS.suffix,
) -> list[str]:
    """Return the URLs that may hold ``key``, most specific first.

    Language degrades before distribution scope:
    ``dist/page.lang``, ``dist/page.fallback``, ``dist/page``,
    ``page.lang``, ``page.fallback``, ``page``.
    """
    if key.lang in ("", fallback_lang):
        langs = [fallback_lang]
    else:
        langs = [key.lang, fallback_lang]

    base = server.rstrip("/")
    urls = [f"{base}/{key.dist}/{key.page}.{lang}{suffix}" for lang in langs]
    urls.append(f"{base}/{key.dist}/{key.page}{suffix}")
    urls.extend(f"{base}/{key.page}.{lang}{suffix}" for lang in langs)
    urls.append(f"{base}/{key.page}{suffix}")
    return urls


def _status_error(url: str, response: httpx.Response) -> FetchError:
    status = f"{response.status_code} {response.reason_phrase}".strip()
    if response.status_code == 404:
        return FetchError(
            ErrorCode.PAGE_NOT_FOUND,
            f"http: {url}: {status}",
            url=url,
            status_code=response.status_code,
            suggestion="Check the page name and release, e.g. --release unstable.",
        )
    return FetchError(
        ErrorCode.FETCH_TRANSIENT,
        f"http: {url}: {status}",
        url=url,
        status_code=response.status_code,
        suggestion="The manual page server may be temporarily unavailable.",
    )


class Fetcher:
    """Streams the first available candidate for a key into a sink."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        server: str = _DEFAULTS.server,
        fallback_lang: str = _DEFAULTS.fallback_lang,
        suffix: str = _DEFAULTS.suffix,
        request_timeout: float = _DEFAULTS.request_timeout_seconds,
        body_limit: int = _DEFAULTS.body_limit_bytes,
    ) -> None:
        self._client = client
        self._server = server
        self._fallback_lang = fallback_lang
        self._suffix = suffix
        self._request_timeout = request_timeout
        self._body_limit = body_limit

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: FetchSettings) -> Fetcher:
        return cls(
            client,
            server=settings.server,
            fallback_lang=settings.fallback_lang,
            suffix=settings.suffix,
            request_timeout=settings.request_timeout_seconds,
            body_limit=settings.body_limit_bytes,
        )

    def candidates(self, key: Key) -> list[str]:
        return build_candidate_urls(
            key,
            server=self._server,
            fallback_lang=self._fallback_lang,
            suffix=self._suffix,
        )

    async def fetch(self, key: Key, sink: BinaryIO) -> str:
        """Write the first candidate that succeeds into ``sink``.

        Returns the URL that was fetched. Raises the first fatal FetchError
        immediately, or the last skippable one once every candidate failed.
        """
        fetch_log = log.bind(page=key.page, dist=key.dist, lang=key.lang)
        last_error: FetchError | None = None

        for url in self.candidates(key):
            outcome = await self.fetch_one(url, sink)
            if outcome.kind == OutcomeKind.SUCCESS:
                fetch_log.info("fetch_complete", url=url, content_length=outcome.bytes_written)
                return url

            last_error = cast("FetchError", outcome.error)
            if outcome.kind == OutcomeKind.FATAL:
                fetch_log.warning(
                    "fetch_aborted",
                    url=url,
                    reason=last_error.message,
                    bytes_written=outcome.bytes_written,
                )
                raise last_error

            fetch_log.debug(
                "fetch_candidate_skipped",
                url=url,
                code=last_error.code,
                status_code=last_error.status_code,
            )

        if last_error is None:
            raise FetchError(ErrorCode.FETCH_TRANSIENT, f"fetch: no candidates for {key.page}")
        raise last_error

    async def fetch_one(self, url: str, sink: BinaryIO) -> FetchOutcome:
        """Fetch a single URL into ``sink`` and classify the result.

        Nothing is written to ``sink`` for error statuses. Once the first
        write to ``sink`` has been attempted, every failure is fatal.
        """
        tainted = False
        written = 0

        try:
            async with asyncio.timeout(self._request_timeout):
                async with self._client.stream("GET", url) as response:
                    if 400 <= response.status_code < 600:
                        await self._drain(response)
                        return FetchOutcome.skippable(url, _status_error(url, response))

                    async for chunk in response.aiter_bytes():
                        chunk = chunk[: self._body_limit - written]
                        tainted = True
                        sink.write(chunk)
                        written += len(chunk)
                        if written >= self._body_limit:
                            break
        except (httpx.HTTPError, TimeoutError, OSError) as exc:
            reason = str(exc) or type(exc).__name__
            if tainted:
                return FetchOutcome.fatal(
                    url,
                    FetchError(ErrorCode.FETCH_FATAL, f"fetch: {url}: {reason}", url=url),
                    written,
                )
            return FetchOutcome.skippable(
                url,
                FetchError(
                    ErrorCode.FETCH_TRANSIENT,
                    f"fetch: {url}: {reason}",
                    url=url,
                    suggestion="Check your network connection.",
                ),
            )

        # A body that fills the limit exactly is indistinguishable from a
        # truncated one, so both are rejected.
        if written == self._body_limit:
            return FetchOutcome.fatal(
                url,
                FetchError(
                    ErrorCode.FETCH_FATAL,
                    "fetch: abandoned read: body too large",
                    url=url,
                ),
                written,
            )
        return FetchOutcome.success(url, written)

    async def _drain(self, response: httpx.Response) -> None:
        """Read and discard an error body so the connection can be reused."""
        drained = 0
        try:
            async for chunk in response.aiter_bytes():
                drained += len(chunk)
                if drained >= self._body_limit:
                    break
        except httpx.HTTPError:
            log.debug("fetch_drain_failed", url=str(response.url), exc_info=True)
