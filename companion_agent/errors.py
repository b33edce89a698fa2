"""
Error Taxonomy

Every collaborator raises one of these. Graph nodes catch them into state and
the HTTP layer maps whatever escapes to a status code via ``kind``.
"""

from typing import Optional

BODY_SNIPPET_LIMIT = 512


def truncate_body(text: str, limit: int = BODY_SNIPPET_LIMIT) -> str:
    """Clip a response body for error messages, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


class CompanionError(Exception):
    """Base exception for companion agent errors"""

    kind = "fatal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransientError(CompanionError):
    """Networking hiccup; polling loops retry these"""

    kind = "transient"


class ReadinessTimeout(CompanionError):
    """An attempt budget ran out"""

    kind = "timeout"

    def __init__(
        self,
        message: str,
        pending: Optional[list[str]] = None,
        log_tail: Optional[str] = None,
    ):
        super().__init__(message)
        self.pending = pending or []
        self.log_tail = log_tail


class RemoteRejected(CompanionError):
    """Non-2xx response from a collaborator"""

    kind = "remote_rejected"

    def __init__(self, message: str, status: int, body: str = ""):
        self.status = status
        self.body = truncate_body(body)
        super().__init__(f"{message}: HTTP {status} - {self.body}")


class InvalidInput(CompanionError):
    """Rejected before any network activity"""

    kind = "invalid_input"


class FatalError(CompanionError):
    """Non-transient failure; never retried automatically"""

    kind = "fatal"


class DecodeError(FatalError):
    """Malformed response body"""


class AgentStateError(CompanionError):
    """Agent lifecycle command issued in the wrong state"""

    kind = "conflict"


class RunFailed(CompanionError):
    """A readiness run ended in Failed; keeps the kind of the error that ended it"""

    def __init__(self, message: str, kind: Optional[str] = None, failed_state: Optional[str] = None):
        super().__init__(message)
        self.kind = kind or FatalError.kind
        self.failed_state = failed_state
