"""
Model Provisioning

Makes sure every required model is available on the model runner, pulling
the missing ones and waiting for them to appear.
"""

import structlog

from ..errors import ReadinessTimeout, TransientError
from .model_runner import ModelRunnerClient, missing_models
from .retry import poll_until

logger = structlog.get_logger(__name__)


class ModelProvisioner:
    """Inventory check, download requests and availability polling."""

    def __init__(
        self,
        client: ModelRunnerClient,
        poll_attempts: int = 60,
        poll_delay: float = 5.0,
    ):
        self.client = client
        self.poll_attempts = poll_attempts
        self.poll_delay = poll_delay

    async def pending_models(self, required: list[str]) -> list[str]:
        """Wait for the runner, then list what is missing."""
        await self.client.await_reachable()
        snapshot = await self.client.list_models()
        pending = missing_models(required, snapshot)
        if pending:
            logger.info("Missing models", pending=pending)
        else:
            logger.info("All required models are already available")
        return pending

    async def request_downloads(self, pending: list[str]) -> None:
        """One download request per model; the first failure aborts."""
        logger.info("Requesting model downloads", models=pending)
        for model in pending:
            await self.client.request_download(model)
        logger.info("Download requests accepted")

    async def wait_until_available(self, pending: list[str]) -> None:
        """
        Poll the inventory until nothing is pending.

        Transport hiccups count as "not yet"; other failures abort.

        Raises:
            ReadinessTimeout: still pending after the attempt budget
        """
        remaining = list(pending)
        attempt = 0

        async def probe():
            nonlocal remaining, attempt
            attempt += 1
            try:
                snapshot = await self.client.list_models()
            except TransientError as e:
                logger.info("Model runner unreachable while polling", attempt=attempt, error=str(e))
                return None
            remaining = [model for model in remaining if model not in snapshot]
            if not remaining:
                return True
            logger.info(
                "Waiting for models to download",
                attempt=attempt,
                pending=remaining,
            )
            return None

        done = await poll_until(
            probe,
            attempts=self.poll_attempts,
            interval=self.poll_delay,
            label="model_download",
        )
        if done is None:
            raise ReadinessTimeout(
                "Timed out waiting for required models to become available: "
                + ", ".join(remaining),
                pending=remaining,
            )
        logger.info("All required models are available", poll_attempts=attempt)

    async def ensure(self, required: list[str]) -> None:
        pending = await self.pending_models(required)
        if not pending:
            return
        await self.request_downloads(pending)
        await self.wait_until_available(pending)
