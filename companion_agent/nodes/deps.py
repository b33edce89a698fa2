"""
Node Dependencies

Collaborators handed to readiness nodes through the LangGraph run config.
"""

from dataclasses import dataclass
from typing import Any, Callable

from langchain_core.runnables import RunnableConfig

from ..context import TunnelSlot
from ..tools.hub_client import HubClient
from ..tools.log_watcher import LogPatternWatcher
from ..tools.provisioning import ModelProvisioner
from ..tools.tunnel import TunnelLauncher


@dataclass
class ReadinessDeps:
    provisioner: ModelProvisioner
    launcher: TunnelLauncher
    url_watcher: LogPatternWatcher
    hub: HubClient
    tunnel_slot: TunnelSlot
    has_local_key: Callable[[], bool]
    target_port: int
    requires_key: bool = True


def get_deps(config: RunnableConfig) -> ReadinessDeps:
    return config["configurable"]["deps"]


def track(state: dict[str, Any], node_name: str) -> dict[str, Any]:
    """Execution tracking fields for a node's state update."""
    return {
        "current_node": node_name,
        "nodes_executed": state.get("nodes_executed", []) + [node_name],
    }


def failure(state: dict[str, Any], node_name: str, error: Exception) -> dict[str, Any]:
    """State update recording a failed node; the error keeps its own kind."""
    return {
        **track(state, node_name),
        "error": str(error),
        "error_kind": getattr(error, "kind", "fatal"),
    }
