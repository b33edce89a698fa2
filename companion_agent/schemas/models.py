"""
Domain and Wire Models

Pydantic models for collaborator payloads and the companion HTTP surface.
Wire names are camelCase; Python attributes stay snake_case.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged as camelCase JSON"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


@dataclass(frozen=True)
class BackgroundAsset:
    """The current background image; immutable so readers can share it."""

    data: bytes
    mime_type: str


class InventoryEntry(BaseModel):
    """One entry of the model runner's ``GET /models`` listing"""

    tags: Optional[list[str]] = None


class RegisterAgentPayload(CamelModel):
    """Descriptor sent to the hub's ``/api/register-agent``"""

    screen_name: str
    tunnel_url: str
    requires_nanobanana_key: bool
    has_local_nanobanana_key: bool


class SecretPayload(BaseModel):
    """Body of ``POST /internal/secrets/nanobanana``"""

    secret: str


class StartAgentRequest(CamelModel):
    screen_name: str


class StartAgentResponse(CamelModel):
    message: str
    tunnel_url: str


class MessageResponse(CamelModel):
    message: str


class GenerateBackgroundRequest(CamelModel):
    prompt: str


class BackgroundImageResult(CamelModel):
    data_url: str
    version: int


class ReadinessOutcome(CamelModel):
    """Final result of one readiness orchestration run"""

    status: Literal["ready", "failed"]
    tunnel_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    failed_state: Optional[str] = None
    states_visited: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "ready"


class ErrorResponse(CamelModel):
    """Body of every error response; ``error`` is the taxonomy kind"""

    error: str
    detail: str
    failed_state: Optional[str] = None
