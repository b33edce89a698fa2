"""
Tests for image extraction and the Background Producer
"""

import base64
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ..background import ApiKeyResolver, BackgroundGenerator
from ..config_loader import Config, ImageConfig
from ..context import AppContext
from ..errors import DecodeError, InvalidInput, RemoteRejected
from ..schemas.models import BackgroundAsset
from ..tools.image_client import ImageGenerationClient, extract_base64_image

IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(64))
IMAGE_B64 = base64.b64encode(IMAGE_BYTES).decode("ascii")


class TestExtractBase64Image:
    """Tests for extract_base64_image"""

    def test_candidates_inline_data(self):
        document = {
            "candidates": [{
                "content": {
                    "parts": [
                        {"text": "here you go"},
                        {"inlineData": {"mimeType": "image/webp", "data": IMAGE_B64}},
                    ]
                }
            }]
        }
        assert extract_base64_image(document) == (IMAGE_B64, "image/webp")

    def test_deep_under_array_skips_short_strings(self):
        document = {
            "result": [
                {"data": "c2hvcnQ="},
                {"outer": {"inner": {"bytesBase64": "  " + IMAGE_B64 + "\n"}}},
            ]
        }
        assert extract_base64_image(document) == (IMAGE_B64, None)

    def test_skips_non_base64(self):
        document = {"data": "this is definitely not base64 text at all!!", "b64_json": IMAGE_B64}
        assert extract_base64_image(document) == (IMAGE_B64, None)

    def test_no_image(self):
        assert extract_base64_image({"candidates": [{"finishReason": "SAFETY"}]}) is None
        assert extract_base64_image("plain") is None


class TestImageGenerationClient:
    """Tests for ImageGenerationClient"""

    @pytest.mark.asyncio
    async def test_generate_sends_prior_and_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"inlineData": {"data": IMAGE_B64}}]}}]
            })

        client = ImageGenerationClient(
            "https://images.example/v1beta/models",
            "gemini-2.5-flash-image",
            transport=httpx.MockTransport(handler),
        )
        prior = BackgroundAsset(data=b"old", mime_type="image/jpeg")

        image_b64, mime = await client.generate("a neon city", "secret", prior=prior)

        assert image_b64 == IMAGE_B64
        assert mime == "image/png"
        assert seen["url"] == "https://images.example/v1beta/models/gemini-2.5-flash-image:generateContent"
        assert seen["key"] == "secret"
        parts = seen["body"]["contents"][0]["parts"]
        assert parts[0] == {"text": "a neon city"}
        assert parts[1]["inlineData"] == {"mimeType": "image/jpeg", "data": "b2xk"}
        assert seen["body"]["generationConfig"]["imageConfig"]["aspectRatio"] == "16:9"

    @pytest.mark.asyncio
    async def test_generate_rejected(self):
        client = ImageGenerationClient(
            "https://images.example",
            "m",
            transport=httpx.MockTransport(lambda r: httpx.Response(403, text="bad key")),
        )
        with pytest.raises(RemoteRejected) as exc_info:
            await client.generate("prompt", "key")
        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_generate_without_image(self):
        client = ImageGenerationClient(
            "https://images.example",
            "m",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"candidates": []})),
        )
        with pytest.raises(DecodeError):
            await client.generate("prompt", "key")


@pytest.fixture
def context():
    return AppContext(Config())


class TestApiKeyResolver:
    """Tests for ApiKeyResolver"""

    @pytest.mark.asyncio
    async def test_config_key_wins(self, context, monkeypatch):
        monkeypatch.setenv("NANOBANANA_API_KEY", "from-env")
        await context.nanobanana_secret.set("from-hub")
        resolver = ApiKeyResolver(ImageConfig(api_key=" from-config "), context)

        assert await resolver.resolve() == "from-config"
        assert resolver.has_local_key()

    @pytest.mark.asyncio
    async def test_env_before_hub_secret(self, context, monkeypatch):
        monkeypatch.setenv("NANOBANANA_API_KEY", "from-env")
        await context.nanobanana_secret.set("from-hub")

        assert await ApiKeyResolver(ImageConfig(), context).resolve() == "from-env"

    @pytest.mark.asyncio
    async def test_hub_secret_before_file(self, context, monkeypatch, tmp_path):
        monkeypatch.delenv("NANOBANANA_API_KEY", raising=False)
        key_file = tmp_path / "key"
        key_file.write_text("from-file\n")
        await context.nanobanana_secret.set("from-hub")
        resolver = ApiKeyResolver(ImageConfig(api_key_file=str(key_file)), context)

        assert await resolver.resolve() == "from-hub"
        await context.nanobanana_secret.clear()
        assert await resolver.resolve() == "from-file"

    @pytest.mark.asyncio
    async def test_no_key(self, context, monkeypatch):
        monkeypatch.delenv("NANOBANANA_API_KEY", raising=False)
        await context.nanobanana_secret.set("from-hub")
        resolver = ApiKeyResolver(ImageConfig(), context)

        assert not resolver.has_local_key()
        await context.nanobanana_secret.clear()
        with pytest.raises(InvalidInput):
            await resolver.resolve()


class TestBackgroundGenerator:
    """Tests for BackgroundGenerator"""

    def make_generator(self, context, result=(IMAGE_B64, "image/png")):
        client = MagicMock()
        client.generate = AsyncMock(return_value=result)
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value="key")
        return BackgroundGenerator(context, client, resolver), client

    @pytest.mark.asyncio
    async def test_rejects_empty_prompt(self, context):
        generator, client = self.make_generator(context)
        with pytest.raises(InvalidInput):
            await generator.generate("   ")
        client.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publishes_and_chains_prior(self, context):
        generator, client = self.make_generator(context)

        first = await generator.generate("a forest")
        assert first.version == 1
        assert first.data_url == f"data:image/png;base64,{IMAGE_B64}"
        assert client.generate.await_args.kwargs["prior"] is None

        second = await generator.generate("now at night")
        assert second.version == 2
        prior = client.generate.await_args.kwargs["prior"]
        assert prior == BackgroundAsset(data=IMAGE_BYTES, mime_type="image/png")

        version, asset = await context.background.snapshot()
        assert version == 2
        assert asset.data == IMAGE_BYTES

    @pytest.mark.asyncio
    async def test_failure_leaves_store_untouched(self, context):
        generator, client = self.make_generator(context)
        client.generate.side_effect = RemoteRejected("Nano banana request failed", status=500)

        with pytest.raises(RemoteRejected):
            await generator.generate("a forest")
        assert (await context.background.snapshot()) == (0, None)
