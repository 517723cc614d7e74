"""Integration test fixtures.

Provides a fully wired Retriever over a tmp-directory cache and a real
httpx client. Individual tests mock the remote server with respx.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import httpx
import pytest

from dman.fetcher import Fetcher
from dman.retriever import Retriever

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from dman.cache import Cache

SERVER = "https://manpages.test"


@pytest.fixture()
async def retriever(cache: Cache) -> AsyncIterator[Retriever]:
    async with httpx.AsyncClient() as client:
        fetcher = Fetcher(client, server=SERVER, request_timeout=2.0)
        yield Retriever(cache, fetcher, ttl=timedelta(days=14))
