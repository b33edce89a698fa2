"""
Agent Controller

Start/stop and housekeeping commands for the agent, as offered to the
desktop front end.
"""

import structlog

from .context import AppContext
from .errors import AgentStateError, RunFailed
from .schemas.models import MessageResponse, StartAgentResponse
from .tools.provisioning import ModelProvisioner
from .tools.tunnel import DockerTunnelLauncher
from .workflow import ReadinessWorkflow

logger = structlog.get_logger(__name__)


class AgentController:
    """Agent lifecycle commands"""

    def __init__(
        self,
        context: AppContext,
        workflow: ReadinessWorkflow,
        provisioner: ModelProvisioner,
        launcher: DockerTunnelLauncher,
    ):
        self.context = context
        self.workflow = workflow
        self.provisioner = provisioner
        self.launcher = launcher

    async def start_agent(self, screen_name: str) -> StartAgentResponse:
        """
        Run the readiness sequence once.

        Raises:
            RunFailed: the run ended in Failed; ``kind`` is the original error's kind
        """
        outcome = await self.workflow.execute(screen_name)
        if not outcome.ok:
            raise RunFailed(
                outcome.error or "Agent start failed.",
                kind=outcome.error_kind,
                failed_state=outcome.failed_state,
            )
        return StartAgentResponse(
            message=f"Agent registered with tunnel: {outcome.tunnel_url}",
            tunnel_url=outcome.tunnel_url,
        )

    async def stop_agent(self) -> MessageResponse:
        """
        Tear down the tunnel session and forget the hub-delivered secret.

        Does not interrupt a readiness run that is still in progress.
        """
        session = await self.context.tunnel.take()
        if session is None:
            raise AgentStateError("Agent not running.")

        await session.process.stop()
        await self.context.nanobanana_secret.clear()

        logger.info("Agent stopped", process=session.process.name, tunnel_url=session.tunnel_url)
        return MessageResponse(message="Agent stopped successfully.")

    async def is_running(self) -> bool:
        return await self.context.tunnel.get() is not None

    async def ensure_models(self) -> None:
        await self.provisioner.ensure(self.context.config.model_runner.required_model_set())

    async def check_docker_access(self) -> None:
        await self.launcher.verify()
