"""Command-line entrypoint.

Responsibilities (and nothing more):
- Parse arguments and load Settings
- Configure structlog
- Wire Cache, Fetcher and Retriever, and run one lookup
- Show the page: typeset and paged on a terminal, roff source otherwise
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shutil
import sys
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from dman import __version__
from dman.cache import Cache
from dman.config import Settings
from dman.errors import DmanError, FetchError, RenderError
from dman.fetcher import Fetcher, build_http_client
from dman.models.key import Key
from dman.render import plain_source, render_page
from dman.retriever import Retriever

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import BinaryIO

    import httpx

log = structlog.get_logger()

_LOCALE_VARS = ("LC_ALL", "LC_MESSAGES", "LANG")


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr. stdout carries the page.
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def detect_language(default: str, environ: Mapping[str, str] | None = None) -> str:
    """Return the two-letter language of the process locale.

    ``fr_FR.UTF-8`` -> ``fr``. Unset, ``C`` and ``POSIX`` locales yield
    ``default``.
    """
    env = os.environ if environ is None else environ
    for var in _LOCALE_VARS:
        value = env.get(var, "")
        if not value:
            continue
        lang = value.split(".", 1)[0].split("@", 1)[0].split("_", 1)[0].lower()
        if lang in ("c", "posix") or not lang.isalpha():
            return default
        return lang
    return default


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dman",
        description="Display Debian manual pages from manpages.debian.org.",
    )
    parser.add_argument("page", help="manual page name, e.g. ls")
    parser.add_argument("--release", metavar="SUITE", help="Debian release (default: stable)")
    parser.add_argument("--lang", help="language code (default: from locale)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_retriever(settings: Settings, client: httpx.AsyncClient) -> Retriever:
    return Retriever(
        Cache(settings.cache.root),
        Fetcher.from_settings(client, settings.fetch),
        ttl=settings.cache.ttl,
    )


async def _get(key: Key, settings: Settings) -> BinaryIO:
    async with build_http_client(settings.fetch) as client:
        return await build_retriever(settings, client).get(key)


def _write_page(stream: BinaryIO, out: BinaryIO) -> None:
    with stream, plain_source(stream) as page:
        if out.isatty():
            render_page(page)
        else:
            shutil.copyfileobj(page, out)
    out.flush()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = Settings()
    _setup_logging(settings)

    try:
        key = Key(
            page=args.page,
            dist=args.release or settings.default_release,
            lang=args.lang or detect_language(settings.default_language),
        )
    except ValidationError as exc:
        print(f"dman: invalid page: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 2

    try:
        stream = asyncio.run(_get(key, settings))
    except FetchError as exc:
        if exc.is_not_found:
            print(f"man page not found: {key.page}", file=sys.stderr)
            return 1
        print(exc.message, file=sys.stderr)
        if exc.suggestion:
            print(exc.suggestion, file=sys.stderr)
        return 1
    except DmanError as exc:
        print(exc.message, file=sys.stderr)
        return 1

    try:
        _write_page(stream, sys.stdout.buffer)
    except RenderError as exc:
        print(f"dman: {exc.message}", file=sys.stderr)
        if exc.suggestion:
            print(exc.suggestion, file=sys.stderr)
        return 1
    except (OSError, EOFError) as exc:
        log.error("page_output_failed", page=key.page, exc_info=True)
        print(f"dman: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
