"""
Conditional Edge Functions

Routing between readiness nodes. Any recorded error goes to ``fail``.
"""

from typing import Any, Literal


def check_error(state: dict[str, Any]) -> Literal["error", "success"]:
    if state.get("error"):
        return "error"
    return "success"


def check_models_pending(
    state: dict[str, Any],
) -> Literal["fail", "request_provisioning", "start_tunnel"]:
    """
    await_inventory -> fail (runner unreachable)
    await_inventory -> start_tunnel (nothing missing)
    await_inventory -> request_provisioning (models missing)
    """
    if state.get("error"):
        return "fail"
    if state.get("pending_models"):
        return "request_provisioning"
    return "start_tunnel"
