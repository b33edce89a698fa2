"""
Tunnel Process Launcher

Starts the quick-tunnel container that exposes the companion HTTP port
publicly, and gives non-destructive access to its output.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

import docker
import structlog
from docker.errors import DockerException, NotFound

from ..errors import FatalError

logger = structlog.get_logger(__name__)


class TunnelProcess(Protocol):
    """A launched tunnel process."""

    name: str

    async def read_stdout(self) -> bytes: ...

    async def read_stderr(self) -> bytes: ...

    async def stop(self) -> None: ...


class TunnelLauncher(Protocol):
    async def launch(self, target_port: int) -> TunnelProcess: ...


@dataclass
class TunnelSession:
    """A running tunnel process plus its public URL once discovered."""

    process: TunnelProcess
    tunnel_url: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)


class DockerTunnelProcess:
    """Container-backed tunnel process. Docker calls run in worker threads."""

    def __init__(self, container: Any):
        self._container = container
        self.name = getattr(container, "name", None) or getattr(container, "id", "tunnel")

    def _logs(self, stdout: bool, stderr: bool) -> bytes:
        try:
            return self._container.logs(stdout=stdout, stderr=stderr)
        except DockerException as e:
            raise FatalError(f"Failed to read tunnel container output: {e}") from e

    async def read_stdout(self) -> bytes:
        return await asyncio.to_thread(self._logs, True, False)

    async def read_stderr(self) -> bytes:
        return await asyncio.to_thread(self._logs, False, True)

    def _stop_sync(self) -> None:
        try:
            self._container.stop()
            self._container.remove(force=True)
        except NotFound:
            logger.warning("Tunnel container already gone", container=self.name)
        except DockerException as e:
            raise FatalError(f"Failed to stop agent container: {e}") from e

    async def stop(self) -> None:
        await asyncio.to_thread(self._stop_sync)
        logger.info("Stopped tunnel container", container=self.name)


class DockerTunnelLauncher:
    """
    Runs ``cloudflared tunnel --url http://<target_host>:<port>`` in a container.

    Launch failures are treated as permanent: the caller does not retry them.
    """

    def __init__(
        self,
        image: str = "cloudflare/cloudflared:latest",
        target_host: str = "host.docker.internal",
        api_timeout: float = 10.0,
    ):
        self.image = image
        self.target_host = target_host
        self.api_timeout = api_timeout

    def _client(self) -> docker.DockerClient:
        try:
            return docker.from_env(timeout=self.api_timeout)
        except DockerException as e:
            raise FatalError(f"Docker is not available: {e}") from e

    def _run_sync(self, command: list[str]):
        client = self._client()
        try:
            return client.containers.run(
                self.image,
                entrypoint="cloudflared",
                command=command,
                detach=True,
                extra_hosts={self.target_host: "host-gateway"},
            )
        except DockerException as e:
            raise FatalError(f"Failed to launch cloudflared: {e}") from e

    async def launch(self, target_port: int) -> DockerTunnelProcess:
        command = ["tunnel", "--url", f"http://{self.target_host}:{target_port}"]
        container = await asyncio.to_thread(self._run_sync, command)
        process = DockerTunnelProcess(container)
        logger.info(
            "Launched tunnel container",
            container=process.name,
            image=self.image,
            target_port=target_port,
        )
        return process

    async def verify(self) -> None:
        """Start and stop a throwaway container to prove Docker access."""
        container = await asyncio.to_thread(self._run_sync, ["--version"])
        process = DockerTunnelProcess(container)
        await asyncio.sleep(0.5)
        await process.stop()
        logger.info("Docker access verified", image=self.image)
