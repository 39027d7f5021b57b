"""
Error taxonomy for the OAuth token lifecycle.

None of these are retried internally; retry policy belongs to the caller.
"""

from __future__ import annotations

from typing import Optional


class OAuthError(Exception):
    """Base class for every failure raised by the connectors package."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderNotConfigured(OAuthError):
    """The provider is unknown or missing its client id / secret."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"OAuth provider '{provider}' not configured", provider)


class InvalidState(OAuthError):
    """The callback ``state`` could not be verified or decoded."""


class StateExpired(InvalidState):
    """The callback ``state`` is older than the allowed window."""


class TokenExchangeFailed(OAuthError):
    """The provider's token endpoint rejected the grant or was unreachable."""

    def __init__(self, provider: str, provider_message: str, *, grant: str = "authorization_code") -> None:
        action = "exchange code for tokens" if grant == "authorization_code" else "refresh access token"
        super().__init__(f"Failed to {action}: {provider_message}", provider)
        self.provider_message = provider_message
        self.grant = grant


class NoIntegrationFound(OAuthError):
    def __init__(self, provider: str, account_id: str) -> None:
        super().__init__(f"No integration found for {provider}", provider)
        self.account_id = account_id


class NoRefreshToken(OAuthError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"No refresh token available for {provider}", provider)


class DecryptionFailed(OAuthError):
    """Stored credentials could not be decrypted or parsed."""


class RefreshConflict(OAuthError):
    """Another writer replaced the credentials while a refresh was in flight."""


class RevocationFailed(OAuthError):
    """The provider's revoke endpoint failed. Never surfaced by ``OAuthManager.revoke``."""
