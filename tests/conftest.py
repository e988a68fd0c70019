"""Shared pytest fixtures for the streaming client tests.

Provides:
- ``ChunkSource``: scripted in-memory :class:`~services.stream_io.ByteSource`
- ``make_source``: factory fixture for ``ChunkSource``
- ``catalog_client``: started ``CatalogClient`` factory over ``httpx.MockTransport``
"""

from __future__ import annotations

import asyncio
from typing import Callable

import httpx
import pytest

from services.catalog_client import CatalogClient


class ChunkSource:
    """Byte source replaying a script.

    Script items: ``bytes`` are returned by one ``read()``, a ``float``
    sleeps that many seconds before the next item, an ``Exception`` is
    raised. When the script runs out, ``read()`` returns ``b""``.
    """

    def __init__(self, script: list) -> None:
        self._script = list(script)
        self.close_calls = 0
        self.reads = 0
        self.active_reads = 0
        self.max_active_reads = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def read(self) -> bytes:
        self.reads += 1
        self.active_reads += 1
        self.max_active_reads = max(self.max_active_reads, self.active_reads)
        try:
            while self._script:
                item = self._script.pop(0)
                if isinstance(item, float):
                    await asyncio.sleep(item)
                    continue
                if isinstance(item, Exception):
                    raise item
                return item
            return b""
        finally:
            self.active_reads -= 1

    async def aclose(self) -> None:
        self.close_calls += 1


@pytest.fixture
def make_source() -> Callable[[list], ChunkSource]:
    return ChunkSource


@pytest.fixture
async def catalog_client():
    """Factory: ``await catalog_client(handler)`` → started client on a mock transport."""
    clients: list[CatalogClient] = []

    async def _make(handler: Callable[[httpx.Request], httpx.Response]) -> CatalogClient:
        client = CatalogClient(
            "https://catalog.example.com",
            "test-api-key",
            transport=httpx.MockTransport(handler),
        )
        await client.start()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()
