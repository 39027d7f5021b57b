"""
OAuth ``state`` codec (CSRF protection).

A state token is ``base64url(json) + "." + hex(hmac_sha256(json))``. It is
self-contained: nothing is stored server-side, the token itself carries the
account, provider, optional integration id, issue time and a random nonce.
The signature is checked before the payload is parsed, then the issue time
is checked against the TTL.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Callable, Optional

from connectors.errors import InvalidState, StateExpired
from connectors.models import StatePayload

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SECONDS = 15 * 60


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    data = value.encode("ascii")
    return base64.b64decode(data + b"=" * (-len(data) % 4), altchars=b"-_", validate=True)


class StateCodec:
    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("OAuth state secret must not be empty")
        self._secret = secret.encode()
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _sign(self, raw: bytes) -> str:
        return hmac.new(self._secret, raw, hashlib.sha256).hexdigest()

    def encode(self, account_id: str, provider: str, integration_id: Optional[str] = None) -> str:
        """Create a fresh, signed state token for one authorization attempt."""
        payload = StatePayload(
            account_id=account_id,
            provider=provider,
            integration_id=integration_id,
            issued_at_ms=self._now_ms(),
            nonce=secrets.token_hex(16),
        )
        raw = json.dumps(payload.to_wire(), separators=(",", ":")).encode("utf-8")
        return _b64url_encode(raw) + "." + self._sign(raw)

    def decode(self, token: str) -> StatePayload:
        """Verify and decode a state token.

        Raises ``InvalidState`` for anything malformed or tampered with and
        ``StateExpired`` when the token is older than the TTL.
        """
        try:
            body, sig = token.split(".", 1)
            raw = _b64url_decode(body)
        except (ValueError, AttributeError) as exc:
            raise InvalidState(f"Invalid OAuth state: {exc}") from exc

        if not hmac.compare_digest(sig.encode("ascii", "replace"), self._sign(raw).encode("ascii")):
            logger.warning("Rejected OAuth state with bad signature")
            raise InvalidState("Invalid OAuth state: bad signature")

        try:
            data = json.loads(raw.decode("utf-8"))
            payload = StatePayload.from_wire(data)
        except (ValueError, KeyError, TypeError) as exc:
            raise InvalidState(f"Invalid OAuth state: {exc}") from exc

        if self._now_ms() - payload.issued_at_ms > self._ttl_ms:
            raise StateExpired("OAuth state expired", payload.provider)
        return payload
