"""
Authorization URL builder — the redirect to a provider's consent screen.
"""

from __future__ import annotations

from urllib.parse import urlencode

from connectors.models import OAuthConfig


def build_auth_url(config: OAuthConfig, state: str) -> str:
    """
    Compose ``auth_url?query`` for the authorization-code flow.

    ``access_type=offline`` and ``prompt=consent`` are sent to every
    provider so a refresh token is issued even on repeat consent.
    """
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": " ".join(config.scopes),
        "response_type": "code",
        "state": state,
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{config.auth_url}?{urlencode(params)}"
