"""
Model Runner Client

Talks to the local model-serving daemon: lists the models it can serve,
asks it to pull missing ones, and waits for it to come up.
"""

from typing import Iterable, Optional

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from ..errors import CompanionError, DecodeError, RemoteRejected, TransientError
from ..schemas.models import InventoryEntry
from .retry import poll_until

logger = structlog.get_logger(__name__)

_INVENTORY_ADAPTER = TypeAdapter(list[InventoryEntry])


def inventory_tags(entries: Iterable[InventoryEntry]) -> frozenset[str]:
    """Flatten a listing into the set of identifiers it answers to."""
    tags: set[str] = set()
    for entry in entries:
        tags.update(entry.tags or [])
    return frozenset(tags)


def missing_models(required: Iterable[str], snapshot: frozenset[str]) -> list[str]:
    """
    Required identifiers with no matching tag in ``snapshot``.

    A model counts as present when any of its tags equals the identifier, so
    aliases work. Order of ``required`` is kept.
    """
    return [model for model in required if model not in snapshot]


class ModelRunnerClient:
    """
    Client for the model runner's HTTP API.

    - ``GET /models`` returns a JSON array of entries with optional ``tags``
    - ``POST /models/create`` with ``{"from": <model>}`` starts a pull
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        warmup_attempts: int = 10,
        warmup_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.warmup_attempts = warmup_attempts
        self.warmup_delay = warmup_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def list_models(self) -> frozenset[str]:
        """
        Take one inventory snapshot.

        Raises:
            TransientError: transport failure
            RemoteRejected: non-2xx response
            DecodeError: body is not a model listing
        """
        client = self._get_client()
        try:
            response = await client.get("/models")
        except httpx.HTTPError as e:
            raise TransientError(f"Failed to query model runner: {e}") from e

        if not response.is_success:
            raise RemoteRejected(
                "Model list request failed",
                status=response.status_code,
                body=response.text,
            )

        try:
            entries = _INVENTORY_ADAPTER.validate_json(response.content)
        except ValidationError as e:
            raise DecodeError(f"Failed to parse model list: {e}") from e

        return inventory_tags(entries)

    async def request_download(self, model: str) -> None:
        """Ask the runner to pull ``model``. Not retried."""
        client = self._get_client()
        try:
            response = await client.post("/models/create", json={"from": model})
        except httpx.HTTPError as e:
            raise TransientError(f'Failed to request download for model "{model}": {e}') from e

        if not response.is_success:
            raise RemoteRejected(
                f'Model download request for "{model}" failed',
                status=response.status_code,
                body=response.text,
            )
        logger.info("Model download requested", model=model)

    async def await_reachable(self) -> frozenset[str]:
        """
        Wait until one listing call succeeds, whatever it contains.

        Every kind of failure counts as "not up yet"; when all attempts fail,
        the last error is raised.
        """
        snapshot = await poll_until(
            self.list_models,
            attempts=self.warmup_attempts,
            interval=self.warmup_delay,
            retry_on=(CompanionError,),
            label="model_runner_warmup",
        )
        logger.info("Model runner reachable", base_url=self.base_url)
        return snapshot

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
