"""
Pydantic schemas and graph state for the companion agent.
"""

from .state import ReadinessState, ReadinessStatus
from .models import (
    BackgroundAsset,
    BackgroundImageResult,
    ErrorResponse,
    GenerateBackgroundRequest,
    InventoryEntry,
    MessageResponse,
    ReadinessOutcome,
    RegisterAgentPayload,
    SecretPayload,
    StartAgentRequest,
    StartAgentResponse,
)

__all__ = [
    "ReadinessState",
    "ReadinessStatus",
    "BackgroundAsset",
    "BackgroundImageResult",
    "ErrorResponse",
    "GenerateBackgroundRequest",
    "InventoryEntry",
    "MessageResponse",
    "ReadinessOutcome",
    "RegisterAgentPayload",
    "SecretPayload",
    "StartAgentRequest",
    "StartAgentResponse",
]
