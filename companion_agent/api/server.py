"""
Companion HTTP Server

FastAPI app bound to the companion port. Serves the background image to
long-polling consumers, accepts the hub-delivered image key, and exposes the
agent lifecycle commands to the local front end.
"""

import asyncio
from typing import Awaitable, Callable, Optional
from datetime import datetime
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from ..agent import AgentController
from ..background import BackgroundGenerator
from ..context import AppContext
from ..errors import CompanionError, InvalidInput, RunFailed
from ..schemas.models import (
    BackgroundAsset,
    BackgroundImageResult,
    ErrorResponse,
    GenerateBackgroundRequest,
    MessageResponse,
    SecretPayload,
    StartAgentRequest,
    StartAgentResponse,
)
from ..store import MAX_VERSION

logger = structlog.get_logger(__name__)

VERSION_HEADER = "x-background-version"
HEALTH_TEXT = "slowly unhinged tunnel working"

STATUS_BY_KIND = {
    "invalid_input": 400,
    "conflict": 409,
    "remote_rejected": 502,
    "transient": 503,
    "timeout": 504,
    "fatal": 500,
}


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    agent_name: str
    version: str
    timestamp: str
    agent_running: bool
    background_version: int


class ClientDisconnected(Exception):
    """The long-poll client went away while its request was parked"""


def build_background_response(
    asset: Optional[BackgroundAsset],
    version: int,
) -> Response:
    """200 with the image, or 204; both carry the version and CORS headers."""
    headers = {
        VERSION_HEADER: str(version),
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Expose-Headers": f"{VERSION_HEADER},content-type",
    }
    if asset is None:
        return Response(status_code=204, headers=headers)
    return Response(
        content=asset.data,
        status_code=200,
        media_type=asset.mime_type,
        headers=headers,
    )


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


class CompanionServer:
    """
    Companion HTTP Server.

    Features:
    - Health text (GET /) and health JSON (GET /health)
    - Background long-poll (GET /background/latest)
    - Hub secret delivery (POST /internal/secrets/nanobanana)
    - Agent lifecycle commands (POST /internal/agent/start|stop, ...)
    """

    def __init__(
        self,
        context: AppContext,
        controller: AgentController,
        generator: BackgroundGenerator,
        long_poll_timeout: Optional[float] = None,
        on_shutdown: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        """
        Initialize Companion Server.

        Args:
            context: Shared slots and the asset store
            controller: Agent lifecycle commands
            generator: Background producer
            long_poll_timeout: Server-side ceiling for one parked request, seconds
            on_shutdown: Awaitable hook run after the agent is stopped on shutdown
        """
        self.context = context
        self.controller = controller
        self.generator = generator
        self.long_poll_timeout = (
            long_poll_timeout
            if long_poll_timeout is not None
            else context.config.server.long_poll_timeout_seconds
        )
        self.agent_name = context.config.agent.name
        self.agent_version = context.config.agent.version
        self.on_shutdown = on_shutdown

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes"""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            """Lifecycle management"""
            logger.info(
                "Companion server starting",
                agent=self.agent_name,
                version=self.agent_version,
            )
            yield
            logger.info("Companion server shutting down")
            if await self.controller.is_running():
                try:
                    await self.controller.stop_agent()
                except CompanionError as e:
                    logger.error("Failed to stop agent on shutdown", error=str(e))
            if self.on_shutdown is not None:
                await self.on_shutdown()

        app = FastAPI(
            title=f"{self.agent_name} Companion API",
            version=self.agent_version,
            description=self.context.config.agent.description,
            lifespan=lifespan,
        )

        @app.exception_handler(CompanionError)
        async def companion_error_handler(request: Request, exc: CompanionError):
            body = ErrorResponse(
                error=exc.kind,
                detail=exc.message,
                failed_state=exc.failed_state if isinstance(exc, RunFailed) else None,
            )
            return JSONResponse(
                status_code=STATUS_BY_KIND.get(exc.kind, 500),
                content=body.model_dump(by_alias=True, exclude_none=True),
            )

        self._register_routes(app)
        return app

    async def wait_for_background(
        self,
        since: int,
        wait: bool,
        request: Optional[Request] = None,
    ) -> Response:
        """
        Long-poll core: answer as soon as there is something newer than
        ``since``, or after the ceiling when ``wait`` is set.
        """
        store = self.context.background
        while True:
            version, asset = await store.snapshot()

            if version == 0:
                if wait and await self._park(version, request):
                    continue
                return build_background_response(None, version)

            if version != since:
                return build_background_response(asset, version)

            # The client already has this version.
            if not wait:
                return build_background_response(None, version)

            if await self._park(version, request):
                continue
            return build_background_response(None, version)

    async def _park(self, observed_version: int, request: Optional[Request]) -> bool:
        """Block until the store moves past ``observed_version`` or the ceiling passes."""
        waiter = self.context.background.wait_for_change(
            self.long_poll_timeout, since=observed_version
        )
        if request is None:
            return await waiter

        wait_task = asyncio.ensure_future(waiter)
        disconnect_task = asyncio.ensure_future(_wait_for_disconnect(request))
        try:
            done, _ = await asyncio.wait(
                {wait_task, disconnect_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (wait_task, disconnect_task):
                if not task.done():
                    task.cancel()

        if wait_task in done:
            return wait_task.result()
        raise ClientDisconnected()

    def _register_routes(self, app: FastAPI) -> None:
        """Register all API routes"""

        # ============== Health Endpoints ==============

        @app.get("/", response_class=PlainTextResponse)
        async def root_health_check():
            return HEALTH_TEXT

        @app.get("/health", response_model=HealthResponse)
        async def health_check():
            version, _ = await self.context.background.snapshot()
            return HealthResponse(
                status="healthy",
                agent_name=self.agent_name,
                version=self.agent_version,
                timestamp=datetime.utcnow().isoformat(),
                agent_running=await self.controller.is_running(),
                background_version=version,
            )

        # ============== Background Long-Poll ==============

        @app.get("/background/latest")
        async def background_latest(
            request: Request,
            since: int = Query(0, ge=0, le=MAX_VERSION),
            wait: bool = False,
        ):
            try:
                return await self.wait_for_background(since, wait, request)
            except ClientDisconnected:
                logger.debug("Long-poll client disconnected", since=since)
                return Response(status_code=204)

        # ============== Secrets ==============

        @app.post("/internal/secrets/nanobanana", status_code=204)
        async def set_nanobanana_secret(payload: SecretPayload):
            sanitized = payload.secret.strip()
            if not sanitized:
                raise InvalidInput("Secret must not be empty.")
            await self.context.nanobanana_secret.set(sanitized)
            logger.info("Received image API key from hub")
            return Response(status_code=204)

        # ============== Agent Lifecycle ==============

        @app.post("/internal/agent/start", response_model=StartAgentResponse)
        async def start_agent(request: StartAgentRequest):
            return await self.controller.start_agent(request.screen_name)

        @app.post("/internal/agent/stop", response_model=MessageResponse)
        async def stop_agent():
            return await self.controller.stop_agent()

        @app.post("/internal/models/ensure", status_code=204)
        async def ensure_models_ready():
            await self.controller.ensure_models()
            return Response(status_code=204)

        @app.get("/internal/docker/check", status_code=204)
        async def check_docker_access():
            await self.controller.check_docker_access()
            return Response(status_code=204)

        # ============== Background Producer ==============

        @app.post("/internal/background/generate", response_model=BackgroundImageResult)
        async def generate_background_image(request: GenerateBackgroundRequest):
            return await self.generator.generate(request.prompt)
