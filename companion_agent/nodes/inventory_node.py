"""
Inventory Node

AwaitingInventory: wait for the model runner, then compute the pending set.
"""

from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig

from ..errors import CompanionError
from .deps import failure, get_deps, track

logger = structlog.get_logger(__name__)


async def await_inventory_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    """
    Run the reachability gate and one listing call.

    Output: ``pending_models`` (empty means skip straight to the tunnel)
    """
    deps = get_deps(config)
    required = state.get("required_models", [])

    logger.info("Checking model inventory", run_id=state.get("run_id"), required=required)

    try:
        pending = await deps.provisioner.pending_models(required)
    except CompanionError as e:
        logger.error("Model runner not ready", run_id=state.get("run_id"), error=str(e))
        return {**failure(state, "await_inventory", e), "status": "awaiting_inventory"}

    return {
        **track(state, "await_inventory"),
        "pending_models": pending,
        "status": "awaiting_inventory",
    }
