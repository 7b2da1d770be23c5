"""OAuth "connect account" flow for integration steps.

The authorize page is opened in a popup.  Completion is push-based: whoever
receives the provider redirect (a postMessage bridge, an SSE listener...)
calls ``flow.complete(nonce, credential_id)``.  If the popup closes without a
push, the newest credential created after the flow started is used.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Literal, Protocol

import httpx

from ..api.client import AutomationsClient, Credential
from ..config import settings

logger = logging.getLogger(__name__)

OAuthStatus = Literal["connected", "cancelled", "timed_out", "blocked", "failed"]


class Popup(Protocol):
    @property
    def closed(self) -> bool: ...

    def close(self) -> None: ...


# (url, width, height) -> popup, or None when the popup was blocked
PopupOpener = Callable[[str, int, int], "Popup | None"]


@dataclass
class OAuthResult:
    status: OAuthStatus
    credential_id: str | None = None
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.status == "connected"


def _newest(credentials: list[Credential]) -> datetime | None:
    stamps = [c.created_at for c in credentials if c.created_at is not None]
    return max(stamps) if stamps else None


class OAuthConnectFlow:
    """One run of the connect handshake for an integration type."""

    def __init__(
        self,
        client: AutomationsClient,
        integration_type: str,
        opener: PopupOpener,
        *,
        action: str | None = None,
        on_credential_created: Callable[[str], None] | None = None,
        poll_interval: float | None = None,
        timeout: float | None = None,
        popup_size: tuple[int, int] | None = None,
        workspace_id: str | None = None,
    ):
        self.client = client
        self.integration_type = integration_type
        self.opener = opener
        self.action = action
        self.on_credential_created = on_credential_created
        self.poll_interval = poll_interval or settings.oauth_poll_interval_seconds
        self.timeout = timeout or settings.oauth_timeout_seconds
        self.popup_size = popup_size or (settings.oauth_popup_width, settings.oauth_popup_height)
        self.workspace_id = workspace_id

        self.nonce = secrets.token_urlsafe(16)
        self._pushed = asyncio.Event()
        self._pushed_id: str | None = None
        self._notified = False

    def complete(self, nonce: str, credential_id: str) -> bool:
        """Deliver the credential created by the provider redirect."""
        if nonce != self.nonce or self._pushed.is_set():
            return False
        self._pushed_id = credential_id
        self._pushed.set()
        return True

    async def run(self) -> OAuthResult:
        try:
            return await self._run()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("OAuth connect for %s failed: %s", self.integration_type, e)
            return OAuthResult("failed", error=str(e) or type(e).__name__)

    async def _run(self) -> OAuthResult:
        existing = await self.client.list_credentials(self.integration_type, self.workspace_id)
        baseline = _newest(existing)

        url = await self.client.get_oauth_authorize_url(
            self.integration_type, self.action, self.nonce, self.workspace_id
        )
        width, height = self.popup_size
        popup = self.opener(url, width, height)
        if popup is None:
            return OAuthResult("blocked", error="Popup was blocked")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        while not self._pushed.is_set() and not popup.closed:
            if loop.time() >= deadline:
                popup.close()
                logger.warning(
                    "OAuth connect for %s timed out after %.0fs", self.integration_type, self.timeout
                )
                return OAuthResult("timed_out", error="Timed out waiting for authorization")
            try:
                await asyncio.wait_for(self._pushed.wait(), self.poll_interval)
            except asyncio.TimeoutError:
                pass

        if self._pushed.is_set():
            if not popup.closed:
                popup.close()
            return self._connected(self._pushed_id)

        credential = await self._find_new_credential(baseline)
        if credential is None:
            logger.info("OAuth popup for %s closed without a new credential", self.integration_type)
            return OAuthResult("cancelled")
        return self._connected(credential.id)

    async def _find_new_credential(self, baseline: datetime | None) -> Credential | None:
        current = await self.client.list_credentials(self.integration_type, self.workspace_id)
        fresh = [
            c for c in current
            if c.created_at is not None and (baseline is None or c.created_at > baseline)
        ]
        return max(fresh, key=lambda c: c.created_at) if fresh else None

    def _connected(self, credential_id: str | None) -> OAuthResult:
        if credential_id and self.on_credential_created and not self._notified:
            self._notified = True
            self.on_credential_created(credential_id)
        return OAuthResult("connected", credential_id=credential_id)
