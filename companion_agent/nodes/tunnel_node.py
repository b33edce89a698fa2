"""
Tunnel Nodes

StartingTunnel and AwaitingTunnelUrl: launch the tunnel container, claim the
shared tunnel slot, and read the public URL out of its logs.
"""

from typing import Any

import structlog
from langchain_core.runnables import RunnableConfig

from ..errors import AgentStateError, CompanionError
from ..tools.tunnel import TunnelSession
from .deps import failure, get_deps, track

logger = structlog.get_logger(__name__)


async def start_tunnel_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    """
    Launch the tunnel and claim the slot for it.

    Launch failures are final. If another run claimed the slot meanwhile,
    the process just launched is stopped again so only one stays alive.
    """
    deps = get_deps(config)
    run_id = state.get("run_id")

    try:
        process = await deps.launcher.launch(deps.target_port)
    except CompanionError as e:
        logger.error("Tunnel launch failed", run_id=run_id, error=str(e))
        return {**failure(state, "start_tunnel", e), "status": "starting_tunnel"}

    session = TunnelSession(process=process)
    if not await deps.tunnel_slot.claim(session):
        logger.warning("Tunnel slot taken by another run", run_id=run_id, process=process.name)
        try:
            await process.stop()
        except CompanionError as e:
            logger.error("Failed to stop surplus tunnel", run_id=run_id, error=str(e))
        error = AgentStateError("Agent already running. Stop it before starting again.")
        return {**failure(state, "start_tunnel", error), "status": "starting_tunnel"}

    logger.info("Tunnel started", run_id=run_id, process=process.name)
    return {
        **track(state, "start_tunnel"),
        "tunnel_session": session,
        "status": "starting_tunnel",
    }


async def await_tunnel_url_node(state: dict[str, Any], config: RunnableConfig) -> dict[str, Any]:
    """
    Watch the tunnel output for its public URL.

    On failure the process keeps running in the slot; stopping the agent
    tears it down.
    """
    deps = get_deps(config)
    session: TunnelSession = state["tunnel_session"]

    try:
        tunnel_url = await deps.url_watcher.wait_for_match(session.process)
    except CompanionError as e:
        logger.error("Tunnel URL not found", run_id=state.get("run_id"), error=str(e))
        return {**failure(state, "await_tunnel_url", e), "status": "awaiting_tunnel_url"}

    logger.info("Tunnel URL discovered", run_id=state.get("run_id"), tunnel_url=tunnel_url)
    return {
        **track(state, "await_tunnel_url"),
        "tunnel_url": tunnel_url,
        "status": "awaiting_tunnel_url",
    }
