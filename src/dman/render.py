"""Page display.

Typesets roff with groff and hands the result to the user's pager. Used by
the CLI when stdout is a terminal. Piped output stays roff source.
"""

from __future__ import annotations

import gzip
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
from typing import TYPE_CHECKING

import structlog

from dman.errors import RenderError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import IO, BinaryIO

log = structlog.get_logger()

GZIP_MAGIC = b"\x1f\x8b"
DEFAULT_COLUMNS = 78
MAX_COLUMNS = 150
DEFAULT_PAGER = ("less", "-is")  # man(1) default


def plain_source(stream: BinaryIO) -> BinaryIO:
    """Return ``stream`` rewound, wrapped in a gunzip reader if it holds gzip data.

    httpx decodes ``Content-Encoding: gzip``, so pages normally arrive as
    plain roff. A server that sends the ``.gz`` file itself without that
    header leaves a gzip member in the cache.
    """
    magic = stream.read(len(GZIP_MAGIC))
    stream.seek(0)
    if magic != GZIP_MAGIC:
        return stream
    return gzip.GzipFile(fileobj=stream, mode="rb")  # type: ignore[return-value]


def columns() -> int:
    """Terminal width, capped at MAX_COLUMNS. DEFAULT_COLUMNS without a terminal."""
    width = shutil.get_terminal_size((DEFAULT_COLUMNS, 24)).columns
    return min(width, MAX_COLUMNS)


def _split_env(environ: Mapping[str, str], name: str) -> list[str] | None:
    value = environ.get(name, "")
    if not value:
        return None
    try:
        argv = shlex.split(value)
    except ValueError:
        log.debug("pager_variable_ignored", variable=name, value=value)
        return None
    return argv or None


def preferred_pager(environ: Mapping[str, str] | None = None) -> list[str]:
    """Pager command line from MANPAGER, then PAGER, then ``less -is``."""
    env = os.environ if environ is None else environ
    for name in ("MANPAGER", "PAGER"):
        argv = _split_env(env, name)
        if argv is not None:
            return argv
    return list(DEFAULT_PAGER)


def typeset(source: BinaryIO, width: int) -> IO[bytes]:
    """Run groff over ``source`` and return the rewound, named output file.

    The file is removed when closed.
    """
    document = source.read()
    output = tempfile.NamedTemporaryFile(prefix="dman-", suffix=".txt")
    argv = ["groff", "-T", "ascii", "-m", "mandoc", f"-rLL={width}n"]
    try:
        # SGR escapes are off so every platform gets overstriking.
        subprocess.run(
            argv,
            input=document,
            stdout=output,
            env={**os.environ, "GROFF_NO_SGR": ""},
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        output.close()
        raise RenderError(
            f"render: typeset: {exc}",
            suggestion="Install groff, or pipe dman into another formatter.",
        ) from exc
    output.seek(0)
    return output


def render_page(source: BinaryIO) -> None:
    """Typeset ``source`` to the terminal width and show it in the pager."""
    width = columns()
    with typeset(source, width) as page:
        argv = [*preferred_pager(), page.name]
        log.debug("page_render", width=width, pager=argv[0])
        sys.stdout.flush()
        try:
            subprocess.run(argv, check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise RenderError(
                f"render: output: {exc}",
                suggestion="Set MANPAGER or PAGER to an installed pager.",
            ) from exc
