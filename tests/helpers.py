"""
Test helpers shared across modules.
"""

import json
import time
from base64 import b64encode
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx

from auth.jwt import sign
from connectors.models import Automation, OAuthConfig


class FakeClock:
    """Callable returning an aware UTC datetime; ``time()`` gives epoch seconds."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def time(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_config(provider: str = "slack", **overrides) -> OAuthConfig:
    values = dict(
        provider_key=provider,
        client_id=f"{provider}-client",
        client_secret=f"{provider}-secret",
        redirect_uri=f"http://localhost:3001/auth/callback/{provider}",
        scopes=("chat:write", "chat:write.public"),
        auth_url=f"https://{provider}.example.com/oauth/authorize",
        token_url=f"https://{provider}.example.com/oauth/token",
    )
    values.update(overrides)
    return OAuthConfig(**values)


def form(request: httpx.Request) -> dict:
    """Decode a form-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def mock_client(handler) -> httpx.AsyncClient:
    """An ``httpx.AsyncClient`` whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def bearer_token(account_id: str, expires_in: int = 3600) -> str:
    """Mint a token the way the dashboard does, for authenticated route tests."""
    raw = json.dumps({"account_id": account_id, "exp": int(time.time()) + expires_in}).encode()
    return b64encode(raw).decode() + "." + sign(raw)


async def seed_legacy_row(session_factory, payload, account_id: str = "acct-1", provider: str = "slack") -> None:
    """Insert a pre-encryption row whose credentials are raw JSON."""
    async with session_factory() as session:
        async with session.begin():
            session.add(
                Automation(
                    account_id=account_id,
                    kind=provider,
                    credentials=json.dumps(payload),
                    security_metadata={},
                )
            )
