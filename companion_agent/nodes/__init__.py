"""Readiness Orchestrator Nodes"""
from .deps import ReadinessDeps, get_deps
from .start_node import start_node
from .inventory_node import await_inventory_node
from .provision_node import request_provisioning_node
from .poll_node import poll_provisioning_node
from .tunnel_node import start_tunnel_node, await_tunnel_url_node
from .register_node import register_node
from .return_node import ready_node, fail_node
from .conditions import check_error, check_models_pending

__all__ = [
    "ReadinessDeps",
    "get_deps",
    "start_node",
    "await_inventory_node",
    "request_provisioning_node",
    "poll_provisioning_node",
    "start_tunnel_node",
    "await_tunnel_url_node",
    "register_node",
    "ready_node",
    "fail_node",
    "check_error",
    "check_models_pending",
]
