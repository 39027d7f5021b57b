"""
Value types for the OAuth lifecycle, plus the stored-credential variant.

``Automation`` (the ORM row) is re-exported here so connector code has a
single import site for everything credential-shaped.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from connectors.errors import DecryptionFailed
from database.models import Automation

ENCRYPTION_VERSION = "1"


class OAuthConfig(BaseModel):
    """Static client configuration for one provider."""

    model_config = {"frozen": True}

    provider_key: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: Tuple[str, ...] = ()
    auth_url: str
    token_url: str


class StatePayload(BaseModel):
    """Context carried through the provider redirect inside the ``state`` param."""

    model_config = {"frozen": True}

    account_id: str
    provider: str
    integration_id: Optional[str] = None
    issued_at_ms: int
    nonce: str

    def to_wire(self) -> Dict[str, Any]:
        return {
            "organizationId": self.account_id,
            "provider": self.provider,
            "integrationId": self.integration_id,
            "timestamp": self.issued_at_ms,
            "nonce": self.nonce,
        }

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "StatePayload":
        return cls(
            account_id=data["organizationId"],
            provider=data["provider"],
            integration_id=data.get("integrationId"),
            issued_at_ms=data["timestamp"],
            nonce=data["nonce"],
        )


class OAuthTokens(BaseModel):
    """Normalized token-endpoint response. Persisted immediately, never cached."""

    model_config = {"frozen": True}

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_credentials(self) -> Dict[str, Any]:
        """Plain JSON object stored (encrypted) in ``automations.credentials``."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "scope": self.scope,
        }

    @classmethod
    def from_credentials(cls, data: Dict[str, Any]) -> "OAuthTokens":
        """
        Rebuild tokens from a stored object. Legacy rows may carry
        ``expires_at`` as an ISO string (with or without offset, or a
        trailing ``Z``) or as epoch seconds; pydantic accepts all of them.
        """
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type") or "Bearer",
            expires_at=data.get("expires_at") or None,
            scope=data.get("scope"),
        )

    def is_expired(self, now: datetime, leeway: timedelta = timedelta(0)) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= now + leeway


class SecurityMetadata(BaseModel):
    encrypted: bool = False
    encryption_version: Optional[str] = None
    encrypted_at: Optional[datetime] = None
    revoked: bool = False
    revoked_at: Optional[datetime] = None

    @classmethod
    def for_encryption(cls, now: datetime) -> "SecurityMetadata":
        return cls(encrypted=True, encryption_version=ENCRYPTION_VERSION, encrypted_at=now)

    @classmethod
    def for_revocation(cls, now: datetime) -> "SecurityMetadata":
        return cls(revoked=True, revoked_at=now)

    def to_json(self) -> Dict[str, Any]:
        """Row JSON: only the keys that apply to this state."""
        if self.revoked:
            return {"revoked": True, "revoked_at": _iso(self.revoked_at)}
        return {
            "encrypted": self.encrypted,
            "encryption_version": self.encryption_version,
            "encrypted_at": _iso(self.encrypted_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ── Stored credentials variant ────────────────────────────────────────────


class EncryptedCredentials(BaseModel):
    model_config = {"frozen": True}

    blob: str

    def reveal(self, cipher) -> Dict[str, Any]:
        return cipher.decrypt(self.blob)


class LegacyCredentials(BaseModel):
    """Rows written before encryption was introduced hold raw JSON."""

    model_config = {"frozen": True}

    payload: Union[str, Dict[str, Any]]

    def reveal(self, cipher=None) -> Dict[str, Any]:
        if isinstance(self.payload, dict):
            return self.payload
        try:
            data = json.loads(self.payload)
        except ValueError as exc:
            raise DecryptionFailed(f"Legacy credentials are not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise DecryptionFailed("Legacy credentials are not a JSON object")
        return data


StoredCredentials = Union[EncryptedCredentials, LegacyCredentials]


def stored_credentials_from_row(row: Automation) -> Optional[StoredCredentials]:
    """Pick the credential variant from ``security_metadata.encrypted``."""
    if row.credentials is None:
        return None
    metadata = row.security_metadata or {}
    if metadata.get("encrypted"):
        return EncryptedCredentials(blob=row.credentials)
    return LegacyCredentials(payload=row.credentials)


class LoadedCredentials(BaseModel):
    model_config = {"frozen": True}

    tokens: OAuthTokens
    integration_id: uuid.UUID
    updated_at: Optional[datetime] = None


class CallbackResult(BaseModel):
    model_config = {"frozen": True}

    account_id: str
    integration_id: Optional[str] = None
    tokens: OAuthTokens = Field(repr=False)


__all__ = [
    "Automation",
    "CallbackResult",
    "EncryptedCredentials",
    "LegacyCredentials",
    "LoadedCredentials",
    "OAuthConfig",
    "OAuthTokens",
    "SecurityMetadata",
    "StatePayload",
    "StoredCredentials",
    "stored_credentials_from_row",
]
