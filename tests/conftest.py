"""Shared test fixtures for the dman test suite."""

from __future__ import annotations

import gzip
from typing import TYPE_CHECKING

import pytest

from dman.cache import Cache
from dman.models.key import Key

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def key() -> Key:
    return Key(page="ls", dist="stable", lang="fr")


@pytest.fixture()
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture()
def cache(cache_root: Path) -> Cache:
    """Cache rooted in an isolated tmp directory."""
    return Cache(cache_root)


@pytest.fixture()
def page_gz() -> bytes:
    """A small gzip-compressed roff document, as served by the remote."""
    return gzip.compress(b'.TH LS 1 "GNU coreutils"\n.SH NAME\nls \\- list directory contents\n')
