"""
TokenExchangeClient — authorization-code and refresh-token grants against a
provider's token endpoint, normalized into ``OAuthTokens``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import httpx

from connectors.errors import TokenExchangeFailed
from connectors.models import OAuthConfig, OAuthTokens

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _provider_error(body: Any) -> Optional[str]:
    """Pull the provider's own error text out of a JSON body, if any."""
    if not isinstance(body, dict):
        return None
    if body.get("error"):
        error = body["error"]
        description = body.get("error_description")
        if isinstance(error, dict):
            return error.get("message") or str(error)
        return f"{error}: {description}" if description else str(error)
    if body.get("ok") is False:
        return "ok=false"
    return None


class TokenExchangeClient:
    """
    Performs the two grant requests. Does not retry and never substitutes a
    missing refresh token; that is the refresh flow's job.

    Pass ``http_client`` to share a connection pool (or a mock transport in
    tests); otherwise a client is opened and closed per call.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._http = http_client
        self._timeout = timeout
        self._clock = clock

    async def exchange_code(self, config: OAuthConfig, code: str) -> OAuthTokens:
        data = {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "code": code,
            "redirect_uri": config.redirect_uri,
            "grant_type": "authorization_code",
        }
        return await self._grant(config, data, grant="authorization_code")

    async def refresh(self, config: OAuthConfig, refresh_token: str) -> OAuthTokens:
        data = {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        return await self._grant(config, data, grant="refresh_token")

    async def _grant(self, config: OAuthConfig, data: Dict[str, str], *, grant: str) -> OAuthTokens:
        provider = config.provider_key
        headers = {"Accept": "application/json"}
        try:
            if self._http is not None:
                resp = await self._http.post(config.token_url, data=data, headers=headers, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(config.token_url, data=data, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Token endpoint unreachable for %s (%s): %s", provider, grant, exc)
            raise TokenExchangeFailed(provider, str(exc) or type(exc).__name__, grant=grant) from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_error:
            message = _provider_error(body) or f"HTTP {resp.status_code}"
            logger.warning("Token endpoint rejected %s grant for %s: %s", grant, provider, message)
            raise TokenExchangeFailed(provider, message, grant=grant)

        message = _provider_error(body)
        if message is None and not (isinstance(body, dict) and body.get("access_token")):
            message = "response did not include an access_token"
        if message is not None:
            logger.warning("Token endpoint returned an error for %s (%s): %s", provider, grant, message)
            raise TokenExchangeFailed(provider, message, grant=grant)

        return self._normalize(body)

    def _normalize(self, body: Dict[str, Any]) -> OAuthTokens:
        expires_at = None
        expires_in = body.get("expires_in")
        if expires_in is not None:
            try:
                expires_at = self._clock() + timedelta(seconds=float(expires_in))
            except (TypeError, ValueError, OverflowError):
                logger.warning("Ignoring unusable expires_in: %r", expires_in)

        scope = body.get("scope")
        if isinstance(scope, (list, tuple)):
            scope = " ".join(scope)

        return OAuthTokens(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token") or None,
            token_type=body.get("token_type") or "Bearer",
            expires_at=expires_at,
            scope=scope,
        )
