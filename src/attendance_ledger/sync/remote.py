from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

import aiohttp

from ..core.constants import DEFAULT_REMOTE_TIMEOUT_SECONDS
from ..core.enums import MirrorAction
from ..core.exceptions import RemoteStoreError

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Read/write contract of the external record store."""

    async def fetch_all(self) -> Optional[dict[str, Any]]:
        """Full state payload, or ``None`` when unavailable or unreadable."""
        raise NotImplementedError

    async def mirror(self, action: MirrorAction, payload: Any) -> None:
        """One write; the response is never consulted."""
        raise NotImplementedError


class AppsScriptRemoteStore:
    """Record store exposed as a single web-app URL (spreadsheet backend).

    GET returns the whole dataset as JSON. Writes are POSTed as a
    ``text/plain`` body ``{"action": ..., "data": ...}``, which keeps browsers
    and the script host from demanding a CORS preflight.
    """

    def __init__(self, url: str, *, timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS):
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def url(self) -> str:
        return self._url

    async def fetch_all(self) -> Optional[dict[str, Any]]:
        if not self._url:
            logger.warning("Remote store URL is not configured, skipping fetch")
            return None

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(self._url) as response:
                    text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Error fetching all data from %s: %s", self._url, e)
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.error("Remote response is not JSON: %.200s", text)
            return None

    async def mirror(self, action: MirrorAction, payload: Any) -> None:
        if not self._url:
            logger.warning("Remote store URL is not configured, dropping %s", action.value)
            return

        body = json.dumps({"action": action.value, "data": payload}, ensure_ascii=False)
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self._url, data=body, headers={"Content-Type": "text/plain"}) as response:
                    logger.debug("Mirrored %s (HTTP %s)", action.value, response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteStoreError(f"API error ({action.value}): {e}") from e
