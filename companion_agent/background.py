"""
Background Producer

Generates a new background image from a prompt and publishes it through the
versioned asset store.
"""

import base64
import binascii
from pathlib import Path
from typing import Optional

import structlog

from .config_loader import ImageConfig, SecretSettings
from .context import AppContext
from .errors import DecodeError, FatalError, InvalidInput
from .schemas.models import BackgroundImageResult
from .tools.image_client import ImageGenerationClient

logger = structlog.get_logger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ApiKeyResolver:
    """
    Finds the image API key.

    Lookup order: configured key, ``NANOBANANA_API_KEY``, the secret the hub
    delivered, then the key file.
    """

    def __init__(self, image_config: ImageConfig, context: AppContext):
        self.image_config = image_config
        self.context = context

    def _from_config(self) -> Optional[str]:
        return _clean(self.image_config.api_key)

    def _from_env(self) -> Optional[str]:
        return _clean(SecretSettings().nanobanana_api_key)

    def _key_file(self) -> Optional[Path]:
        if not self.image_config.api_key_file:
            return None
        return Path(self.image_config.api_key_file).expanduser()

    def _from_file(self) -> Optional[str]:
        path = self._key_file()
        if path is None or not path.exists():
            return None
        try:
            return _clean(path.read_text())
        except OSError as e:
            raise FatalError(f'Failed to read nano banana API key from "{path}": {e}') from e

    def has_local_key(self) -> bool:
        """Whether a key exists without help from the hub."""
        return bool(self._from_config() or self._from_env() or self._from_file())

    async def resolve(self) -> str:
        key = self._from_config() or self._from_env()
        if key:
            return key

        key = await self.context.nanobanana_secret.get()
        if key:
            return key

        key = self._from_file()
        if key:
            return key

        raise InvalidInput(
            "Nano banana API key not configured. Provide one via image.api_key in the "
            "config file, the NANOBANANA_API_KEY environment variable, the key file "
            f"({self._key_file() or 'image.api_key_file not set'}), or let the Hub deliver a default key."
        )


class BackgroundGenerator:
    """Producer side of the background pipeline"""

    def __init__(
        self,
        context: AppContext,
        client: ImageGenerationClient,
        key_resolver: Optional[ApiKeyResolver] = None,
    ):
        self.context = context
        self.client = client
        self.key_resolver = key_resolver or ApiKeyResolver(context.config.image, context)

    async def generate(self, prompt: str) -> BackgroundImageResult:
        """
        Generate and publish a new background.

        The previous background, if any, goes along as context. The store's
        lock is only taken to read the prior asset and to install the result.
        """
        if not prompt or not prompt.strip():
            raise InvalidInput("Prompt must not be empty.")

        api_key = await self.key_resolver.resolve()
        prior = await self.context.background.latest_asset()

        image_base64, mime = await self.client.generate(prompt, api_key, prior=prior)

        try:
            image_bytes = base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Failed to decode image data: {e}") from e

        version = await self.context.background.replace(image_bytes, mime)
        return BackgroundImageResult(
            data_url=f"data:{mime};base64,{image_base64}",
            version=version,
        )
