"""
Register Node

Registering: tell the hub where this agent can be reached.
"""

from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig

from ..errors import CompanionError
from ..schemas.models import RegisterAgentPayload
from .deps import failure, get_deps, track

logger = structlog.get_logger(__name__)


async def register_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    """Any transport error or non-2xx answer ends the run."""
    deps = get_deps(config)

    try:
        payload = RegisterAgentPayload(
            screen_name=state["screen_name"],
            tunnel_url=state["tunnel_url"],
            requires_nanobanana_key=deps.requires_key,
            has_local_nanobanana_key=deps.has_local_key(),
        )
        await deps.hub.register_agent(payload)
    except CompanionError as e:
        logger.error("Agent registration failed", run_id=state.get("run_id"), error=str(e))
        return {**failure(state, "register", e), "status": "registering"}

    await deps.tunnel_slot.set_url(state["tunnel_session"], state["tunnel_url"])
    return {
        **track(state, "register"),
        "status": "registering",
    }
