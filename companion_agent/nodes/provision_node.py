"""
Provision Node

RequestingProvisioning: one download request per pending model.
"""

from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig

from ..errors import CompanionError
from .deps import failure, get_deps, track

logger = structlog.get_logger(__name__)


async def request_provisioning_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    """Requests are not retried; the first rejected model aborts the run."""
    deps = get_deps(config)
    pending = state.get("pending_models", [])

    try:
        await deps.provisioner.request_downloads(pending)
    except CompanionError as e:
        logger.error("Model download request failed", run_id=state.get("run_id"), error=str(e))
        return {**failure(state, "request_provisioning", e), "status": "requesting_provisioning"}

    return {
        **track(state, "request_provisioning"),
        "status": "requesting_provisioning",
    }
