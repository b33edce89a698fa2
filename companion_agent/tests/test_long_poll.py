"""
Tests for the background long-poll endpoint
"""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ..api.server import HEALTH_TEXT, VERSION_HEADER, CompanionServer
from ..config_loader import Config
from ..context import AppContext


@pytest.fixture
def context():
    return AppContext(Config())


@pytest.fixture
def server(context):
    controller = MagicMock()
    controller.is_running = AsyncMock(return_value=False)
    return CompanionServer(context, controller, MagicMock(), long_poll_timeout=0.2)


def make_client(server):
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=server.app),
        base_url="http://testserver",
    )


class TestBackgroundLatest:
    """Tests for GET /background/latest"""

    @pytest.mark.asyncio
    async def test_nothing_produced_yet(self, server):
        async with make_client(server) as client:
            response = await client.get("/background/latest")

        assert response.status_code == 204
        assert response.headers[VERSION_HEADER] == "0"
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_returns_newer_version(self, server, context):
        await context.background.replace(b"\x89PNG-bytes", "image/png")

        async with make_client(server) as client:
            response = await client.get("/background/latest", params={"since": 0})

        assert response.status_code == 200
        assert response.content == b"\x89PNG-bytes"
        assert response.headers["content-type"] == "image/png"
        assert response.headers[VERSION_HEADER] == "1"
        assert VERSION_HEADER in response.headers["access-control-expose-headers"]

    @pytest.mark.asyncio
    async def test_current_version_without_wait(self, server, context):
        await context.background.replace(b"one", "image/png")

        async with make_client(server) as client:
            started = time.monotonic()
            response = await client.get("/background/latest", params={"since": 1})
            elapsed = time.monotonic() - started

        assert response.status_code == 204
        assert response.headers[VERSION_HEADER] == "1"
        assert elapsed < 0.15

    @pytest.mark.asyncio
    async def test_wait_released_by_replace(self, server, context):
        await context.background.replace(b"one", "image/png")
        server.long_poll_timeout = 5.0

        async def produce():
            await asyncio.sleep(0.05)
            await context.background.replace(b"two", "image/webp")

        async with make_client(server) as client:
            producer = asyncio.create_task(produce())
            started = time.monotonic()
            response = await client.get(
                "/background/latest",
                params={"since": 1, "wait": "true"},
            )
            elapsed = time.monotonic() - started
            await producer

        assert response.status_code == 200
        assert response.content == b"two"
        assert response.headers[VERSION_HEADER] == "2"
        assert elapsed < 2.0

    @pytest.mark.asyncio
    async def test_wait_ceiling(self, server, context):
        await context.background.replace(b"one", "image/png")

        async with make_client(server) as client:
            response = await client.get(
                "/background/latest",
                params={"since": 1, "wait": "true"},
            )

        assert response.status_code == 204
        assert response.headers[VERSION_HEADER] == "1"

    @pytest.mark.asyncio
    async def test_wait_on_empty_store(self, server):
        async with make_client(server) as client:
            response = await client.get(
                "/background/latest",
                params={"since": 0, "wait": "true"},
            )

        assert response.status_code == 204
        assert response.headers[VERSION_HEADER] == "0"

    @pytest.mark.asyncio
    async def test_wait_on_empty_store_released_by_replace(self, server, context):
        server.long_poll_timeout = 5.0

        async def produce():
            await asyncio.sleep(0.05)
            await context.background.replace(b"first", "image/png")

        async with make_client(server) as client:
            producer = asyncio.create_task(produce())
            started = time.monotonic()
            response = await client.get(
                "/background/latest",
                params={"since": 0, "wait": "true"},
            )
            elapsed = time.monotonic() - started
            await producer

        assert response.status_code == 200
        assert response.content == b"first"
        assert response.headers[VERSION_HEADER] == "1"
        assert elapsed < 2.0

    @pytest.mark.asyncio
    async def test_client_disconnect_releases_parked_request(self, server, context):
        await context.background.replace(b"one", "image/png")
        server.long_poll_timeout = 5.0
        received = []
        sent = []

        async def receive():
            received.append(True)
            if len(received) == 1:
                return {"type": "http.request", "body": b"", "more_body": False}
            await asyncio.sleep(0.1)
            return {"type": "http.disconnect"}

        async def send(message):
            sent.append(message)

        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/background/latest",
            "raw_path": b"/background/latest",
            "root_path": "",
            "query_string": b"since=1&wait=true",
            "headers": [(b"host", b"testserver")],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }

        started = time.monotonic()
        await asyncio.wait_for(server.app(scope, receive, send), 2.0)
        elapsed = time.monotonic() - started

        assert elapsed < 1.0
        start_messages = [m for m in sent if m["type"] == "http.response.start"]
        assert start_messages[0]["status"] == 204
        version, asset = await context.background.snapshot()
        assert version == 1
        assert asset.data == b"one"

    @pytest.mark.asyncio
    async def test_rejects_negative_since(self, server):
        async with make_client(server) as client:
            response = await client.get("/background/latest", params={"since": -1})

        assert response.status_code == 422


class TestHealthText:
    """Tests for GET /"""

    @pytest.mark.asyncio
    async def test_root(self, server):
        async with make_client(server) as client:
            response = await client.get("/")

        assert response.status_code == 200
        assert response.text == HEALTH_TEXT
