"""
Integration OAuth service — application entry point.
"""

from __future__ import annotations

import logging
import sys
from datetime import timedelta

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from config.settings import Settings, config
from connectors.encryption import CredentialCipher
from connectors.registry import ProviderRegistry
from connectors.revocation import RevocationDispatcher
from connectors.routes import callback_router, router as integrations_router
from connectors.state import StateCodec
from connectors.store import CredentialStore
from connectors.token_client import TokenExchangeClient
from connectors.token_manager import OAuthManager

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def build_oauth_manager(settings: Settings, session_factory, http_client: httpx.AsyncClient) -> OAuthManager:
    """Assemble the OAuth core from settings. Raises ``ValueError`` on bad secrets."""
    registry = ProviderRegistry.from_settings(settings)
    return OAuthManager(
        registry=registry,
        state_codec=StateCodec(settings.oauth_state_secret, ttl_seconds=settings.oauth_state_ttl_seconds),
        token_client=TokenExchangeClient(http_client, timeout=settings.token_exchange_timeout_seconds),
        store=CredentialStore(session_factory, CredentialCipher.from_settings(settings)),
        revoker=RevocationDispatcher(http_client, timeout=settings.revoke_timeout_seconds),
        refresh_leeway=timedelta(seconds=settings.token_refresh_leeway_seconds),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Integration OAuth Service",
        version="1.0.0",
        description="OAuth token lifecycle for Slack, Notion and Google Sheets integrations.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    app.include_router(integrations_router, prefix="/api/v1/integrations/oauth")
    app.include_router(callback_router, prefix="/auth/callback")

    @app.on_event("startup")
    async def on_startup():
        from database.session import async_session_factory, create_tables

        await create_tables()

        app.state.http_client = httpx.AsyncClient()
        app.state.oauth_manager = build_oauth_manager(config, async_session_factory, app.state.http_client)

        configured = app.state.oauth_manager.registry.list_configured()
        if not configured:
            logger.warning("No OAuth providers configured; set *_CLIENT_ID / *_CLIENT_SECRET")
        logger.info("Application ready to accept requests (providers: %s).", ", ".join(configured) or "none")

    @app.on_event("shutdown")
    async def on_shutdown():
        client = getattr(app.state, "http_client", None)
        if client is not None:
            await client.aclose()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
