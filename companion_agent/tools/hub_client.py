"""
Hub Client

Registers this agent's public tunnel URL with the hub so consumers can
find it by screen name.
"""

from typing import Optional

import httpx
import structlog

from ..errors import RemoteRejected, TransientError
from ..schemas.models import RegisterAgentPayload

logger = structlog.get_logger(__name__)


class HubClient:
    """Client for the hub's agent registry"""

    def __init__(
        self,
        hub_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.hub_url = hub_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.hub_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def register_agent(self, payload: RegisterAgentPayload) -> None:
        """
        POST the agent descriptor to ``/api/register-agent``.

        Raises:
            TransientError: the request never got a response
            RemoteRejected: the hub answered with a non-2xx status
        """
        client = self._get_client()
        try:
            response = await client.post(
                "/api/register-agent",
                json=payload.model_dump(mode="json", by_alias=True),
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Request to Hub failed: {e}") from e

        if not response.is_success:
            raise RemoteRejected(
                "Failed to register agent",
                status=response.status_code,
                body=response.text,
            )

        logger.info(
            "Registered agent with hub",
            screen_name=payload.screen_name,
            tunnel_url=payload.tunnel_url,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
