"""
Poll Node

PollingProvisioning: wait until every requested model shows up.
"""

from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig

from ..errors import CompanionError, ReadinessTimeout
from .deps import failure, get_deps, track

logger = structlog.get_logger(__name__)


async def poll_provisioning_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    deps = get_deps(config)
    pending = state.get("pending_models", [])

    try:
        await deps.provisioner.wait_until_available(pending)
    except ReadinessTimeout as e:
        logger.error("Models still pending", run_id=state.get("run_id"), pending=e.pending)
        return {
            **failure(state, "poll_provisioning", e),
            "pending_models": e.pending,
            "status": "polling_provisioning",
        }
    except CompanionError as e:
        return {**failure(state, "poll_provisioning", e), "status": "polling_provisioning"}

    return {
        **track(state, "poll_provisioning"),
        "pending_models": [],
        "status": "polling_provisioning",
    }
