"""
Versioned Asset Store

Single-writer, many-reader holder for the current background image. Every
replacement bumps a version counter and wakes every waiting reader.
"""

import asyncio
from typing import Optional

import structlog

from .schemas.models import BackgroundAsset

logger = structlog.get_logger(__name__)

VERSION_MODULUS = 2 ** 64
MAX_VERSION = VERSION_MODULUS - 1


class VersionedAssetStore:
    """
    Holds ``(version, asset)`` behind one ``asyncio.Condition``.

    Version 0 means nothing has been produced yet and is the only state
    without an asset. Versions wrap past 2**64 - 1 back to 1, never to 0.
    """

    def __init__(self):
        self._condition = asyncio.Condition()
        self._version = 0
        self._asset: Optional[BackgroundAsset] = None

    async def replace(self, data: bytes, mime_type: str) -> int:
        """
        Install a new asset and wake every waiter.

        The caller builds the payload first; the lock only covers the swap.

        Returns:
            The new version
        """
        asset = BackgroundAsset(data=data, mime_type=mime_type)
        async with self._condition:
            self._asset = asset
            self._version = (self._version + 1) % VERSION_MODULUS or 1
            version = self._version
            self._condition.notify_all()

        logger.info(
            "Background asset replaced",
            version=version,
            mime_type=mime_type,
            size=len(data),
        )
        return version

    async def snapshot(self) -> tuple[int, Optional[BackgroundAsset]]:
        """Consistent ``(version, asset)`` pair."""
        async with self._condition:
            return self._version, self._asset

    async def latest_asset(self) -> Optional[BackgroundAsset]:
        _, asset = await self.snapshot()
        return asset

    async def wait_for_change(self, timeout: float, since: Optional[int] = None) -> bool:
        """
        Suspend until a replacement happens or ``timeout`` seconds pass.

        With ``since``, returns at once if the version already differs from
        it; the check and the wait happen under the same lock, so a write that
        lands between a caller's snapshot and this call is never missed.

        Returns:
            True if woken by (or already past) a replacement, False on timeout.
            Callers still re-read ``snapshot()`` either way.
        """
        async with self._condition:
            if since is not None and self._version != since:
                return True
            try:
                await asyncio.wait_for(self._condition.wait(), timeout)
            except asyncio.TimeoutError:
                return False
            return True
