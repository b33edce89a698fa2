"""
Image Generation Client

Calls the remote ``generateContent`` endpoint and digs the generated image
out of whatever shape the response happens to have.
"""

import base64
import binascii
import json
from typing import Any, Optional

import httpx
import structlog

from ..errors import DecodeError, RemoteRejected, TransientError
from ..schemas.models import BackgroundAsset

logger = structlog.get_logger(__name__)

IMAGE_DATA_KEYS = ("data", "bytesBase64", "b64_json")
MIN_BASE64_LENGTH = 32
MAX_SEARCH_DEPTH = 64


def _is_base64(text: str) -> bool:
    try:
        base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def extract_base64_image(
    value: Any,
    depth: int = 0,
) -> Optional[tuple[str, Optional[str]]]:
    """
    Find the first base64 image payload anywhere in a JSON document.

    Objects are searched ``inlineData`` first, then their own
    ``data``/``bytesBase64``/``b64_json`` strings (longer than 32 characters
    and valid base64), then every value in order. Arrays are searched item by
    item.

    Returns:
        (base64 text, MIME type from the same object if any), or None
    """
    if depth > MAX_SEARCH_DEPTH:
        return None

    if isinstance(value, dict):
        inline_data = value.get("inlineData")
        if inline_data is not None:
            found = extract_base64_image(inline_data, depth + 1)
            if found:
                return found

        for key in IMAGE_DATA_KEYS:
            data = value.get(key)
            if isinstance(data, str):
                trimmed = data.strip()
                if len(trimmed) > MIN_BASE64_LENGTH and _is_base64(trimmed):
                    mime = value.get("mimeType")
                    return trimmed, mime if isinstance(mime, str) else None

        for child in value.values():
            found = extract_base64_image(child, depth + 1)
            if found:
                return found
        return None

    if isinstance(value, list):
        for item in value:
            found = extract_base64_image(item, depth + 1)
            if found:
                return found
    return None


class ImageGenerationClient:
    """Client for ``POST <endpoint>/<model>:generateContent``"""

    def __init__(
        self,
        endpoint: str,
        model: str,
        aspect_ratio: str = "16:9",
        fallback_mime: str = "image/png",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.fallback_mime = fallback_mime
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    def build_request(self, prompt: str, prior: Optional[BackgroundAsset]) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if prior is not None:
            parts.append({
                "inlineData": {
                    "mimeType": prior.mime_type,
                    "data": base64.b64encode(prior.data).decode("ascii"),
                }
            })
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "imageConfig": {"aspectRatio": self.aspect_ratio},
            },
        }

    async def generate(
        self,
        prompt: str,
        api_key: str,
        prior: Optional[BackgroundAsset] = None,
    ) -> tuple[str, str]:
        """
        Generate an image, optionally conditioned on the previous one.

        Returns:
            (base64 image data, MIME type)
        """
        client = self._get_client()
        url = f"{self.endpoint}/{self.model}:generateContent"

        try:
            response = await client.post(
                url,
                json=self.build_request(prompt, prior),
                headers={"X-Goog-Api-Key": api_key},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Nano banana request failed: {e}") from e

        if not response.is_success:
            raise RemoteRejected(
                "Nano banana request failed",
                status=response.status_code,
                body=response.text,
            )

        try:
            document = json.loads(response.text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Failed to parse nano banana response: {e}") from e

        found = extract_base64_image(document)
        if found is None:
            logger.error(
                "Image response without image data",
                model=self.model,
                body=response.text[:2048],
            )
            raise DecodeError(
                "Nano banana response did not contain image data. Check logs for raw response."
            )

        image_base64, mime = found
        logger.info("Generated background image", model=self.model, mime_type=mime)
        return image_base64, mime or self.fallback_mime

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
