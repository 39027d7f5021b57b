"""
RevocationDispatcher — best-effort token revocation at the provider.

Each provider has its own endpoint (or none). Failures raise
``RevocationFailed``; callers decide whether that matters. For
``OAuthManager.revoke`` it never does: local cleanup always runs.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from connectors.errors import RevocationFailed
from connectors.providers import GOOGLE_SHEETS, NOTION, SLACK

logger = logging.getLogger(__name__)

_GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
_SLACK_REVOKE_URL = "https://slack.com/api/auth.revoke"

DEFAULT_REVOKE_TIMEOUT_SECONDS = 5.0


class RevocationDispatcher:
    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = DEFAULT_REVOKE_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_client
        self._timeout = timeout
        self._handlers: Dict[str, Callable[[httpx.AsyncClient, str], Awaitable[None]]] = {
            GOOGLE_SHEETS: self._revoke_google,
            SLACK: self._revoke_slack,
        }

    async def revoke(self, provider: str, credentials: Dict[str, Any]) -> bool:
        """
        Revoke ``credentials["access_token"]`` with the provider.

        Returns True when the provider confirmed revocation, False when there
        was nothing to call (Notion, unknown provider, no access token).
        """
        if provider == NOTION:
            logger.info("Notion credentials marked inactive (no public revoke endpoint)")
            return False

        handler = self._handlers.get(provider)
        if handler is None:
            logger.info("No revoke endpoint configured for provider: %s", provider)
            return False

        access_token = credentials.get("access_token")
        if not access_token:
            logger.info("No access token to revoke for %s", provider)
            return False

        try:
            if self._http is not None:
                await handler(self._http, access_token)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    await handler(client, access_token)
        except httpx.HTTPError as exc:
            raise RevocationFailed(f"Revoke call to {provider} failed: {exc!r}", provider) from exc

        logger.info("%s tokens revoked", provider)
        return True

    async def _revoke_google(self, client: httpx.AsyncClient, access_token: str) -> None:
        resp = await client.post(_GOOGLE_REVOKE_URL, params={"token": access_token}, timeout=self._timeout)
        resp.raise_for_status()

    async def _revoke_slack(self, client: httpx.AsyncClient, access_token: str) -> None:
        resp = await client.post(_SLACK_REVOKE_URL, data={"token": access_token}, timeout=self._timeout)
        resp.raise_for_status()
        try:
            body = resp.json()
        except ValueError:
            body = {}
        # Slack answers 200 with {"ok": false, "error": ...} on failure
        if isinstance(body, dict) and body.get("ok") is False:
            raise RevocationFailed(f"Slack auth.revoke failed: {body.get('error', 'unknown_error')}", SLACK)
