"""
FastAPI dependencies for the integrations API.

``get_current_account_id`` authenticates the caller; ``get_oauth_manager``
hands routes the ``OAuthManager`` built at startup.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from connectors.token_manager import OAuthManager

_bearer_scheme = HTTPBearer()


async def get_current_account_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Verify the Bearer token and return the ``account_id`` it was issued for."""
    from auth.jwt import verify_token

    return verify_token(credentials.credentials)


def get_oauth_manager(request: Request) -> OAuthManager:
    manager = getattr(request.app.state, "oauth_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OAuth manager not initialised",
        )
    return manager
