"""
OAuthManager — the single entry point the HTTP layer calls.

Wires together the provider registry, state codec, token exchange client,
credential store and revocation dispatcher:

  • generate_auth_url  → consent-screen redirect with a signed state
  • handle_callback    → verify state, exchange code, persist tokens
  • refresh            → refresh grant, keeping the old refresh token if
                         the provider did not rotate it
  • revoke             → best-effort provider revoke, then local clear
  • get_access_token   → stored access token, refreshed when near expiry
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from connectors.authorize import build_auth_url
from connectors.errors import DecryptionFailed, InvalidState, NoIntegrationFound, NoRefreshToken
from connectors.models import CallbackResult, LoadedCredentials, OAuthTokens
from connectors.registry import ProviderRegistry
from connectors.revocation import RevocationDispatcher
from connectors.state import StateCodec
from connectors.store import CredentialStore
from connectors.token_client import TokenExchangeClient

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_LEEWAY = timedelta(seconds=120)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OAuthManager:
    def __init__(
        self,
        registry: ProviderRegistry,
        state_codec: StateCodec,
        token_client: TokenExchangeClient,
        store: CredentialStore,
        revoker: RevocationDispatcher,
        *,
        refresh_leeway: timedelta = DEFAULT_REFRESH_LEEWAY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self._state = state_codec
        self._tokens = token_client
        self._store = store
        self._revoker = revoker
        self._refresh_leeway = refresh_leeway
        self._clock = clock

    # ── Authorization ───────────────────────────────────────────────────

    def generate_auth_url(self, provider: str, account_id: str, integration_id: Optional[str] = None) -> str:
        config = self.registry.config_for(provider)
        state = self._state.encode(account_id, provider, integration_id)
        return build_auth_url(config, state)

    async def handle_callback(self, provider: str, code: str, state: str) -> CallbackResult:
        """Verify ``state``, exchange ``code`` and store the resulting tokens."""
        config = self.registry.config_for(provider)
        payload = self._state.decode(state)
        if payload.provider != provider:
            logger.warning("OAuth state issued for %s replayed on %s callback", payload.provider, provider)
            raise InvalidState("Invalid OAuth state: provider mismatch", provider)

        tokens = await self._tokens.exchange_code(config, code)
        await self._store.save(payload.account_id, provider, tokens, payload.integration_id)

        logger.info("OAuth connected: account=%s provider=%s", payload.account_id, provider)
        return CallbackResult(
            account_id=payload.account_id,
            integration_id=payload.integration_id,
            tokens=tokens,
        )

    # ── Refresh ─────────────────────────────────────────────────────────

    async def refresh(self, provider: str, account_id: str) -> OAuthTokens:
        config = self.registry.config_for(provider)
        loaded = await self._store.load(account_id, provider)
        return await self._refresh_loaded(config, provider, account_id, loaded)

    async def _refresh_loaded(self, config, provider: str, account_id: str, loaded: LoadedCredentials) -> OAuthTokens:
        refresh_token = loaded.tokens.refresh_token
        if not refresh_token:
            raise NoRefreshToken(provider)

        new_tokens = await self._tokens.refresh(config, refresh_token)
        # Some providers only rotate the refresh token occasionally
        if not new_tokens.refresh_token:
            new_tokens = new_tokens.model_copy(update={"refresh_token": refresh_token})

        await self._store.save(
            account_id,
            provider,
            new_tokens,
            loaded.integration_id,
            expected_updated_at=loaded.updated_at,
        )
        logger.info("Refreshed %s token for account %s", provider, account_id)
        return new_tokens

    async def get_access_token(self, provider: str, account_id: str) -> str:
        """
        Return a usable access token, refreshing first when it expires within
        the leeway window.
        """
        config = self.registry.config_for(provider)
        loaded = await self._store.load(account_id, provider)
        if not loaded.tokens.is_expired(self._clock(), self._refresh_leeway):
            return loaded.tokens.access_token
        refreshed = await self._refresh_loaded(config, provider, account_id, loaded)
        return refreshed.access_token

    # ── Revocation ──────────────────────────────────────────────────────

    async def revoke(self, provider: str, account_id: str) -> None:
        """
        Disconnect an integration. The provider call is advisory; the local
        clear always runs and is what disables the integration.
        """
        self.registry.config_for(provider)

        credentials: Optional[Dict[str, Any]] = None
        try:
            loaded = await self._store.load(account_id, provider)
            credentials = loaded.tokens.to_credentials()
        except NoIntegrationFound:
            logger.info("No stored %s credentials for account %s; nothing to revoke remotely", provider, account_id)
        except DecryptionFailed as exc:
            logger.warning("Failed to decrypt %s credentials for revocation: %s", provider, exc)

        if credentials is not None:
            try:
                await self._revoker.revoke(provider, credentials)
            except Exception as exc:
                logger.warning("Failed to revoke tokens with %s provider: %s", provider, exc)

        await self._store.clear(account_id, provider)
        logger.info("Disconnected %s for account %s", provider, account_id)

    # ── Listing ─────────────────────────────────────────────────────────

    def list_providers(self) -> List[Dict[str, object]]:
        return self.registry.list_providers()

    async def list_connections(self, account_id: str) -> List[Dict[str, Any]]:
        return await self._store.list_connections(account_id)
