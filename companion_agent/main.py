"""
Companion Agent Main Entry Point

Wires the shared context, collaborators and HTTP server together and runs
them under uvicorn.
"""

import logging
import os
from typing import Optional

import structlog
import uvicorn
from dotenv import load_dotenv

from .config_loader import Config, load_config
from .context import AppContext
from .agent import AgentController
from .background import ApiKeyResolver, BackgroundGenerator
from .api.server import CompanionServer
from .nodes import ReadinessDeps
from .workflow import ReadinessWorkflow
from .tools import (
    DockerTunnelLauncher,
    HubClient,
    ImageGenerationClient,
    LogPatternWatcher,
    ModelProvisioner,
    ModelRunnerClient,
)

logger = structlog.get_logger(__name__)


def configure_logging(log_level: str = "INFO", log_format: Optional[str] = None) -> None:
    """Configure structured logging"""
    log_format = log_format or os.getenv("LOG_FORMAT", "json")
    logging.basicConfig(format="%(message)s", level=log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class CompanionRunner:
    """
    Companion Runner

    Builds every component from one Config and runs the HTTP server.
    """

    def __init__(self, config: Optional[Config] = None, config_path: Optional[str] = None):
        """
        Initialize companion runner.

        Args:
            config: Ready-made configuration (takes precedence)
            config_path: Path to config.yaml
        """
        self.config = config or load_config(config_path)
        self.context = AppContext(self.config)

        model_runner = self.config.model_runner
        self.model_runner_client = ModelRunnerClient(
            base_url=model_runner.base_url,
            timeout=model_runner.timeout_seconds,
            warmup_attempts=model_runner.warmup_attempts,
            warmup_delay=model_runner.warmup_delay_seconds,
        )
        self.provisioner = ModelProvisioner(
            self.model_runner_client,
            poll_attempts=model_runner.poll_attempts,
            poll_delay=model_runner.poll_delay_seconds,
        )

        tunnel = self.config.tunnel
        self.launcher = DockerTunnelLauncher(
            image=tunnel.image,
            target_host=tunnel.target_host,
            api_timeout=tunnel.docker_timeout_seconds,
        )
        url_watcher = LogPatternWatcher(
            tunnel.url_pattern,
            attempts=tunnel.log_poll_attempts,
            interval=tunnel.log_poll_interval_seconds,
            label="cloudflared",
        )

        self.hub_client = HubClient(
            self.config.agent.hub_url,
            timeout=self.config.agent.timeout_seconds,
        )

        image = self.config.image
        self.image_client = ImageGenerationClient(
            endpoint=image.endpoint,
            model=image.model,
            aspect_ratio=image.aspect_ratio,
            fallback_mime=image.fallback_mime,
            timeout=image.timeout_seconds,
        )
        key_resolver = ApiKeyResolver(image, self.context)

        deps = ReadinessDeps(
            provisioner=self.provisioner,
            launcher=self.launcher,
            url_watcher=url_watcher,
            hub=self.hub_client,
            tunnel_slot=self.context.tunnel,
            has_local_key=key_resolver.has_local_key,
            target_port=self.config.server.port,
            requires_key=self.config.agent.requires_key,
        )
        self.workflow = ReadinessWorkflow(deps, model_runner.required_model_set())
        self.controller = AgentController(
            self.context,
            self.workflow,
            self.provisioner,
            self.launcher,
        )
        self.generator = BackgroundGenerator(self.context, self.image_client, key_resolver)
        self.server = CompanionServer(
            self.context,
            self.controller,
            self.generator,
            on_shutdown=self.close,
        )

    async def close(self) -> None:
        """Close HTTP clients"""
        await self.model_runner_client.close()
        await self.hub_client.close()
        await self.image_client.close()

    def run(self) -> None:
        """Run the companion server"""
        logger.info(
            "Starting companion server",
            host=self.config.server.host,
            port=self.config.server.port,
        )

        uvicorn.run(
            self.server.app,
            host=self.config.server.host,
            port=self.config.server.port,
            log_level=self.config.observability.log_level.lower(),
        )


def main(config_path: Optional[str] = None) -> None:
    """Load environment and config, configure logging, run the server."""
    load_dotenv()
    config = load_config(config_path)
    configure_logging(config.observability.log_level, config.observability.log_format)
    CompanionRunner(config=config).run()


if __name__ == "__main__":
    main()
