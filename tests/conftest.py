"""Shared fixtures for feed_ingest tests."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from feed_ingest.config import ServerConfig
from feed_ingest.storage.database import open_database


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def config(tmp_path):
    return ServerConfig(
        db_path=tmp_path / "feed_ingest.db",
        pool_size=2,
        fetch_interval_seconds=0.01,
        fetch_timeout_seconds=5,
    )


@pytest.fixture
async def db(config):
    """Open a pooled database in a temporary directory."""
    database = await open_database(config.db_path, config.pool_size)
    yield database
    await database.pool.close()


class FakeFeedServer:
    """Canned HTTP responses keyed by URL.

    Unknown URLs answer 404.
    """

    def __init__(self, client_class):
        self.client_class = client_class
        self.responses = {}
        self.requested = []

    def add(self, url, body, status=200):
        self.responses[url] = (status, body)

    def fail(self, url, exc):
        self.responses[url] = exc

    async def get(self, url, **kwargs):
        self.requested.append(url)
        result = self.responses.get(url, (404, ""))
        if isinstance(result, Exception):
            raise result
        status, body = result
        return httpx.Response(
            status,
            content=body.encode("utf-8"),
            request=httpx.Request("GET", url),
        )


@pytest.fixture
def feed_server():
    """Patch the fetcher's HTTP client with a FakeFeedServer."""
    with patch("feed_ingest.services.fetcher.httpx.AsyncClient") as mock_client:
        server = FakeFeedServer(mock_client)

        mock_instance = AsyncMock()
        mock_instance.get = server.get
        mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
        mock_instance.__aexit__ = AsyncMock(return_value=None)
        mock_client.return_value = mock_instance

        yield server
