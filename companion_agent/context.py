"""
Shared Application Context

Process-wide mutable slots, passed explicitly to every component. Each slot
has its own lock, held only for a read or a swap, never across network I/O.
"""

import asyncio
from typing import Optional

import structlog

from .config_loader import Config
from .store import VersionedAssetStore
from .tools.tunnel import TunnelSession

logger = structlog.get_logger(__name__)


class TunnelSlot:
    """Holds at most one live tunnel session."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._session: Optional[TunnelSession] = None

    async def get(self) -> Optional[TunnelSession]:
        async with self._lock:
            return self._session

    async def claim(self, session: TunnelSession) -> bool:
        """Install ``session`` only if the slot is empty."""
        async with self._lock:
            if self._session is not None:
                return False
            self._session = session
            return True

    async def take(self) -> Optional[TunnelSession]:
        """Empty the slot, returning what was in it."""
        async with self._lock:
            session, self._session = self._session, None
            return session

    async def set_url(self, session: TunnelSession, tunnel_url: str) -> None:
        async with self._lock:
            session.tunnel_url = tunnel_url


class SecretSlot:
    """Holds the image API key delivered by the hub, if any."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._secret: Optional[str] = None

    async def get(self) -> Optional[str]:
        async with self._lock:
            return self._secret

    async def set(self, secret: str) -> None:
        async with self._lock:
            self._secret = secret

    async def clear(self) -> None:
        async with self._lock:
            self._secret = None


class AppContext:
    """Everything shared between HTTP handlers, the producer and the orchestrator."""

    def __init__(self, config: Config):
        self.config = config
        self.background = VersionedAssetStore()
        self.tunnel = TunnelSlot()
        self.nanobanana_secret = SecretSlot()
