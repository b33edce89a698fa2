"""
Tests for the Companion HTTP Server control routes
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ..api.server import CompanionServer
from ..config_loader import Config
from ..context import AppContext
from ..errors import AgentStateError, InvalidInput, RunFailed, TransientError
from ..schemas.models import BackgroundImageResult, MessageResponse, StartAgentResponse


@pytest.fixture
def context():
    return AppContext(Config())


@pytest.fixture
def controller():
    controller = MagicMock()
    controller.is_running = AsyncMock(return_value=False)
    controller.start_agent = AsyncMock()
    controller.stop_agent = AsyncMock()
    controller.ensure_models = AsyncMock()
    controller.check_docker_access = AsyncMock()
    return controller


@pytest.fixture
def generator():
    generator = MagicMock()
    generator.generate = AsyncMock()
    return generator


@pytest.fixture
def client(context, controller, generator):
    server = CompanionServer(context, controller, generator)
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=server.app),
        base_url="http://testserver",
    )


class TestSecretsEndpoint:
    """Tests for POST /internal/secrets/nanobanana"""

    @pytest.mark.asyncio
    async def test_stores_trimmed_secret(self, client, context):
        async with client:
            response = await client.post("/internal/secrets/nanobanana", json={"secret": "  abc  "})

        assert response.status_code == 204
        assert await context.nanobanana_secret.get() == "abc"

    @pytest.mark.asyncio
    async def test_rejects_blank_secret(self, client, context):
        async with client:
            response = await client.post("/internal/secrets/nanobanana", json={"secret": "   "})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"
        assert await context.nanobanana_secret.get() is None


class TestAgentEndpoints:
    """Tests for the agent lifecycle routes"""

    @pytest.mark.asyncio
    async def test_start(self, client, controller):
        controller.start_agent.return_value = StartAgentResponse(
            message="Agent registered with tunnel: https://abc.trycloudflare.com",
            tunnel_url="https://abc.trycloudflare.com",
        )
        async with client:
            response = await client.post("/internal/agent/start", json={"screenName": "alice"})

        assert response.status_code == 200
        assert response.json()["tunnelUrl"] == "https://abc.trycloudflare.com"
        controller.start_agent.assert_awaited_once_with("alice")

    @pytest.mark.asyncio
    async def test_start_failure_maps_kind(self, client, controller):
        controller.start_agent.side_effect = RunFailed(
            "Timed out waiting for cloudflared output to match.",
            kind="timeout",
            failed_state="awaiting_tunnel_url",
        )
        async with client:
            response = await client.post("/internal/agent/start", json={"screenName": "alice"})

        assert response.status_code == 504
        assert response.json() == {
            "error": "timeout",
            "detail": "Timed out waiting for cloudflared output to match.",
            "failedState": "awaiting_tunnel_url",
        }

    @pytest.mark.asyncio
    async def test_stop_not_running(self, client, controller):
        controller.stop_agent.side_effect = AgentStateError("Agent not running.")
        async with client:
            response = await client.post("/internal/agent/stop")

        assert response.status_code == 409
        assert response.json()["detail"] == "Agent not running."

    @pytest.mark.asyncio
    async def test_stop(self, client, controller):
        controller.stop_agent.return_value = MessageResponse(message="Agent stopped successfully.")
        async with client:
            response = await client.post("/internal/agent/stop")

        assert response.status_code == 200
        assert response.json() == {"message": "Agent stopped successfully."}

    @pytest.mark.asyncio
    async def test_ensure_models_unreachable(self, client, controller):
        controller.ensure_models.side_effect = TransientError("Failed to query model runner")
        async with client:
            response = await client.post("/internal/models/ensure")

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_docker_check(self, client, controller):
        async with client:
            response = await client.get("/internal/docker/check")

        assert response.status_code == 204
        controller.check_docker_access.assert_awaited_once()


class TestGenerateEndpoint:
    """Tests for POST /internal/background/generate"""

    @pytest.mark.asyncio
    async def test_generate(self, client, generator):
        generator.generate.return_value = BackgroundImageResult(
            data_url="data:image/png;base64,AAAA", version=3
        )
        async with client:
            response = await client.post("/internal/background/generate", json={"prompt": "dusk"})

        assert response.status_code == 200
        assert response.json() == {"dataUrl": "data:image/png;base64,AAAA", "version": 3}

    @pytest.mark.asyncio
    async def test_generate_empty_prompt(self, client, generator):
        generator.generate.side_effect = InvalidInput("Prompt must not be empty.")
        async with client:
            response = await client.post("/internal/background/generate", json={"prompt": ""})

        assert response.status_code == 400


class TestHealthEndpoint:
    """Tests for GET /health"""

    @pytest.mark.asyncio
    async def test_health(self, client, controller, context):
        controller.is_running.return_value = True
        await context.background.replace(b"img", "image/png")

        async with client:
            response = await client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["agent_name"] == "companion_agent"
        assert body["agent_running"] is True
        assert body["background_version"] == 1
