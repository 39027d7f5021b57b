"""
Integration OAuth routes — auth URL, callback, refresh, disconnect.

Route prefixes: /api/v1/integrations/oauth (authenticated) and
/auth/callback (provider redirect target, authenticated by ``state``).
"""

from __future__ import annotations

import html
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse

from auth.dependencies import get_current_account_id, get_oauth_manager
from connectors.errors import (
    DecryptionFailed,
    InvalidState,
    NoIntegrationFound,
    NoRefreshToken,
    OAuthError,
    ProviderNotConfigured,
    RefreshConflict,
    TokenExchangeFailed,
)
from connectors.providers import display_name, provider_for_callback
from connectors.token_manager import OAuthManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["integrations"])
callback_router = APIRouter(tags=["integrations"])

_STATUS_BY_ERROR = [
    (ProviderNotConfigured, status.HTTP_404_NOT_FOUND),
    (InvalidState, status.HTTP_400_BAD_REQUEST),
    (TokenExchangeFailed, status.HTTP_502_BAD_GATEWAY),
    (NoIntegrationFound, status.HTTP_404_NOT_FOUND),
    (NoRefreshToken, status.HTTP_409_CONFLICT),
    (RefreshConflict, status.HTTP_409_CONFLICT),
    (DecryptionFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def http_error(exc: OAuthError) -> HTTPException:
    """Translate a connectors error into the matching HTTP response."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def list_providers(manager: OAuthManager = Depends(get_oauth_manager)) -> list[dict]:
    """
    List all known providers and their configuration status.
    No auth required — used by the dashboard to show available integrations.
    """
    return manager.list_providers()


@router.get("/connections")
async def list_connections(
    account_id: str = Depends(get_current_account_id),
    manager: OAuthManager = Depends(get_oauth_manager),
) -> list[dict]:
    """List all integration rows for the authenticated account (no secrets)."""
    return await manager.list_connections(account_id)


@router.get("/{provider}/auth-url")
async def get_auth_url(
    provider: str,
    integration_id: Optional[str] = Query(None),
    account_id: str = Depends(get_current_account_id),
    manager: OAuthManager = Depends(get_oauth_manager),
) -> Dict[str, str]:
    """
    Get the OAuth authorization URL for a provider.

    The dashboard opens this URL in a popup window.
    """
    try:
        auth_url = manager.generate_auth_url(provider, account_id, integration_id)
    except OAuthError as exc:
        raise http_error(exc)
    return {"auth_url": auth_url, "provider": provider}


@router.post("/{provider}/refresh")
async def refresh_tokens(
    provider: str,
    account_id: str = Depends(get_current_account_id),
    manager: OAuthManager = Depends(get_oauth_manager),
) -> Dict[str, Any]:
    try:
        tokens = await manager.refresh(provider, account_id)
    except OAuthError as exc:
        logger.warning("Refresh failed for %s/%s: %s", provider, account_id, exc)
        raise http_error(exc)
    return {
        "status": "refreshed",
        "provider": provider,
        "expires_at": tokens.expires_at.isoformat() if tokens.expires_at else None,
    }


@router.delete("/{provider}")
async def disconnect(
    provider: str,
    account_id: str = Depends(get_current_account_id),
    manager: OAuthManager = Depends(get_oauth_manager),
) -> Dict[str, Any]:
    """Revoke at the provider (best effort) and disable the integration."""
    try:
        await manager.revoke(provider, account_id)
    except OAuthError as exc:
        raise http_error(exc)
    return {"status": "disconnected", "provider": provider}


@callback_router.get("/{slug}")
async def oauth_callback(
    slug: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    manager: OAuthManager = Depends(get_oauth_manager),
) -> HTMLResponse:
    """
    OAuth callback — the provider redirects here after consent.

    Returns a small HTML page that notifies the opener window and
    auto-closes.
    """
    provider = provider_for_callback(slug)
    label = display_name(provider)

    if error or not code or not state:
        message = f"Authorization was not granted: {error}" if error else "Missing code or state"
        return HTMLResponse(_callback_html(False, message, provider), status_code=400)

    try:
        await manager.handle_callback(provider, code, state)
    except OAuthError as exc:
        logger.error("OAuth callback failed for %s: %s", provider, exc)
        return HTMLResponse(
            _callback_html(False, f"Connection failed: {exc}", provider),
            status_code=http_error(exc).status_code,
        )

    return HTMLResponse(_callback_html(True, f"Connected {label}", provider), status_code=200)


# ── Callback HTML template ─────────────────────────────────────────────


def _callback_html(success: bool, message: str, provider: str) -> str:
    """
    Small HTML page shown in the OAuth popup after redirect.
    Sends a postMessage to the opener and auto-closes.
    """
    status_text = "Connected!" if success else "Failed"
    color = "#00d992" if success else "#ef4444"
    event = json.dumps(
        {"type": "oauth-callback", "provider": provider, "success": success, "message": message}
    ).replace("</", "<\\/")

    return f"""<!DOCTYPE html>
<html>
<head>
    <title>{html.escape(provider)} {status_text}</title>
    <style>
        body {{ font-family: system-ui, sans-serif; display: flex; align-items: center;
               justify-content: center; height: 100vh; margin: 0; }}
        h2 {{ color: {color}; }}
    </style>
</head>
<body>
    <div>
        <h2>{status_text}</h2>
        <p>{html.escape(message)}</p>
        <p>This window will close automatically…</p>
    </div>
    <script>
        if (window.opener) {{
            window.opener.postMessage({event}, '*');
        }}
        setTimeout(() => window.close(), 2000);
    </script>
</body>
</html>"""
