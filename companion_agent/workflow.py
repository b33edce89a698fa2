"""
Readiness Workflow

LangGraph state machine that brings the agent's dependencies up and
registers it with the hub.

State Machine Flow:
    START -> start -> await_inventory -> request_provisioning -> poll_provisioning
          -> start_tunnel -> await_tunnel_url -> register -> ready -> END

    Branches:
    - await_inventory -> start_tunnel (no models missing)
    - any node -> fail -> END (error recorded)
"""

from typing import Any, Optional
from datetime import datetime
from uuid import uuid4

import structlog
from langgraph.graph import StateGraph, START, END

from .schemas.models import ReadinessOutcome
from .schemas.state import ReadinessState
from .nodes import (
    ReadinessDeps,
    start_node,
    await_inventory_node,
    request_provisioning_node,
    poll_provisioning_node,
    start_tunnel_node,
    await_tunnel_url_node,
    register_node,
    ready_node,
    fail_node,
    check_error,
    check_models_pending,
)

logger = structlog.get_logger(__name__)

# Linear hops: node -> next node when no error was recorded
_LINEAR_EDGES = [
    ("start", "await_inventory"),
    ("request_provisioning", "poll_provisioning"),
    ("poll_provisioning", "start_tunnel"),
    ("start_tunnel", "await_tunnel_url"),
    ("await_tunnel_url", "register"),
    ("register", "ready"),
]


class ReadinessWorkflow:
    """
    Readiness Orchestrator

    One ``execute`` call is one run. There is no automatic retry of the
    whole sequence; callers decide whether to run again after a failure.
    """

    def __init__(self, deps: ReadinessDeps, required_models: list[str]):
        """
        Initialize workflow.

        Args:
            deps: Collaborators the nodes call
            required_models: RequiredItemSet, fixed for every run
        """
        self.deps = deps
        self.required_models = list(required_models)
        self._graph: Optional[StateGraph] = None
        self._compiled = None

    def get_state_class(self) -> type:
        return ReadinessState

    def build_graph(self, graph: StateGraph) -> None:
        """Add nodes and edges to the graph."""
        graph.add_node("start", start_node)
        graph.add_node("await_inventory", await_inventory_node)
        graph.add_node("request_provisioning", request_provisioning_node)
        graph.add_node("poll_provisioning", poll_provisioning_node)
        graph.add_node("start_tunnel", start_tunnel_node)
        graph.add_node("await_tunnel_url", await_tunnel_url_node)
        graph.add_node("register", register_node)
        graph.add_node("ready", ready_node)
        graph.add_node("fail", fail_node)

        graph.add_edge(START, "start")

        for source, target in _LINEAR_EDGES:
            graph.add_conditional_edges(
                source,
                check_error,
                {
                    "success": target,
                    "error": "fail",
                },
            )

        # await_inventory -> request_provisioning | start_tunnel | fail
        graph.add_conditional_edges(
            "await_inventory",
            check_models_pending,
            {
                "request_provisioning": "request_provisioning",
                "start_tunnel": "start_tunnel",
                "fail": "fail",
            },
        )

        graph.add_edge("ready", END)
        graph.add_edge("fail", END)

    def compile(self) -> Any:
        """Compile the workflow graph once and reuse it."""
        if self._compiled:
            return self._compiled

        self._graph = StateGraph(self.get_state_class())
        self.build_graph(self._graph)
        self._compiled = self._graph.compile()
        logger.info("Compiled readiness workflow")
        return self._compiled

    def get_initial_state(self, screen_name: str, run_id: Optional[str] = None) -> ReadinessState:
        return {
            "run_id": run_id or str(uuid4()),
            "screen_name": screen_name,
            "required_models": list(self.required_models),
            "pending_models": [],
            "tunnel_url": None,
            "status": "idle",
            "current_node": "start",
            "nodes_executed": [],
            "started_at": datetime.utcnow().isoformat(),
            "error": None,
            "error_kind": None,
            "failed_state": None,
        }

    async def execute(self, screen_name: str, run_id: Optional[str] = None) -> ReadinessOutcome:
        """
        Run the readiness sequence to Ready or Failed.

        Returns:
            ReadinessOutcome; failures carry the error kind, message and the
            state in which the run stopped
        """
        app = self.compile()
        initial_state = self.get_initial_state(screen_name, run_id)

        logger.info(
            "Executing readiness workflow",
            run_id=initial_state["run_id"],
            required_models=self.required_models,
        )

        try:
            final_state = await app.ainvoke(
                initial_state,
                config={"configurable": {"deps": self.deps}},
            )
        except Exception:
            logger.exception("Readiness workflow exception", run_id=initial_state["run_id"])
            raise

        outcome = ReadinessOutcome(
            status="ready" if final_state.get("status") == "ready" else "failed",
            tunnel_url=final_state.get("tunnel_url"),
            error=final_state.get("error"),
            error_kind=final_state.get("error_kind"),
            failed_state=final_state.get("failed_state"),
            states_visited=final_state.get("nodes_executed", []),
        )

        logger.info(
            "Readiness workflow finished",
            run_id=initial_state["run_id"],
            status=outcome.status,
            nodes_executed=outcome.states_visited,
        )
        return outcome
