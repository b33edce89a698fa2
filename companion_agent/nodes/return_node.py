"""
Return Nodes

Terminal states: Ready and Failed(reason).
"""

from typing import Any

import structlog

from .deps import track

logger = structlog.get_logger(__name__)


async def ready_node(state: dict[str, Any]) -> dict[str, Any]:
    logger.info(
        "Agent ready",
        run_id=state.get("run_id"),
        screen_name=state.get("screen_name"),
        tunnel_url=state.get("tunnel_url"),
    )
    return {
        **track(state, "ready"),
        "status": "ready",
    }


async def fail_node(state: dict[str, Any]) -> dict[str, Any]:
    """Record which state the run died in."""
    failed_state = state.get("status", "idle")
    logger.error(
        "Readiness run failed",
        run_id=state.get("run_id"),
        failed_state=failed_state,
        error_kind=state.get("error_kind"),
        error=state.get("error"),
    )
    return {
        **track(state, "fail"),
        "failed_state": failed_state,
        "status": "failed",
    }
