"""
Bearer token verification for the integrations API.

Tokens are ``<base64 JSON payload>.<hex HMAC-SHA256>`` and carry the
``account_id`` the caller acts for plus an ``exp`` epoch. The secret is
loaded from ``config.jwt_secret`` (env var: ``JWT_SECRET``). Issuing tokens
to end users is the dashboard's concern; this service only verifies them.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode

from fastapi import HTTPException, status

from config.settings import config


def sign(raw: bytes) -> str:
    """Hex HMAC-SHA256 of a raw payload under the shared secret."""
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def _claims(token: str) -> dict:
    body, _, signature = token.partition(".")
    if not signature:
        raise ValueError("bad format")
    raw = b64decode(body, validate=True)
    if not hmac.compare_digest(signature, sign(raw)):
        raise ValueError("bad signature")
    claims = json.loads(raw)
    if not isinstance(claims, dict):
        raise ValueError("payload is not an object")
    return claims


def verify_token(token: str) -> str:
    """
    Return the ``account_id`` of a valid, unexpired token.

    Raises ``HTTPException(401)`` otherwise.
    """
    try:
        claims = _claims(token)
        if claims.get("exp", 0) < time.time():
            raise ValueError("token expired")
        account_id = claims["account_id"]
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        )
    return account_id
