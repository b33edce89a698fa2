"""
Start Node

Idle state: reject bad input and double starts before touching the network.
"""

from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig

from ..errors import AgentStateError, InvalidInput
from .deps import failure, get_deps, track

logger = structlog.get_logger(__name__)


async def start_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    """
    Validate the run before any collaborator is contacted.

    - Screen name must be non-empty after trimming
    - No tunnel session may be live already
    """
    deps = get_deps(config)
    screen_name = (state.get("screen_name") or "").strip()

    logger.info("Starting readiness run", run_id=state.get("run_id"), screen_name=screen_name)

    try:
        if not screen_name:
            raise InvalidInput("Screen name must not be empty.")
        if await deps.tunnel_slot.get() is not None:
            raise AgentStateError("Agent already running. Stop it before starting again.")
    except (InvalidInput, AgentStateError) as e:
        return {**failure(state, "start", e), "status": "idle"}

    return {
        **track(state, "start"),
        "screen_name": screen_name,
        "status": "idle",
    }
