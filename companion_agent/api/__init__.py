"""
API module for the companion agent.

Provides:
- Background long-poll gateway
- Hub secret delivery
- Agent lifecycle commands and health checks
"""

from .server import CompanionServer, build_background_response

__all__ = ["CompanionServer", "build_background_response"]
