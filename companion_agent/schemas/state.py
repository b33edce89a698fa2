"""
LangGraph Readiness State Definition

The TypedDict that flows through every readiness node.
"""

from typing import Any, Literal, Optional, TypedDict


ReadinessStatus = Literal[
    "idle",
    "awaiting_inventory",
    "requesting_provisioning",
    "polling_provisioning",
    "starting_tunnel",
    "awaiting_tunnel_url",
    "registering",
    "ready",
    "failed",
]


class ReadinessState(TypedDict, total=False):
    """
    Readiness orchestration state.

    ``status`` names the state the run is in; a node that fails records
    ``error``/``error_kind`` and leaves ``status`` at the state it failed in,
    which the ``fail`` node copies to ``failed_state``.
    """

    # ============== Run Input ==============
    run_id: str
    screen_name: str                      # Trimmed, non-empty
    required_models: list[str]            # RequiredItemSet, fixed for the run

    # ============== Inventory ==============
    pending_models: list[str]             # PendingSet; only ever shrinks

    # ============== Tunnel ==============
    tunnel_session: Any                   # TunnelSession, also held in the shared slot
    tunnel_url: Optional[str]

    # ============== Execution Tracking ==============
    status: ReadinessStatus
    current_node: str
    nodes_executed: list[str]
    started_at: str

    # ============== Final Results ==============
    error: Optional[str]
    error_kind: Optional[str]
    failed_state: Optional[str]
