"""
CredentialStore — the only component that reads or writes credential rows.

Rows live in ``automations`` and are unique per (account_id, kind). Tokens
are encrypted with ``CredentialCipher`` before they touch the database.
Every call opens its own session so the connection is released on every
exit path.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.encryption import CredentialCipher
from connectors.errors import DecryptionFailed, NoIntegrationFound, RefreshConflict
from connectors.models import (
    Automation,
    LoadedCredentials,
    OAuthTokens,
    SecurityMetadata,
    stored_credentials_from_row,
)
from connectors.providers import display_name

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT supporting ``on_conflict_do_update``."""
    dialect = session.get_bind().dialect.name
    return sqlite_insert if dialect == "sqlite" else pg_insert


class CredentialStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: CredentialCipher,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher
        self._clock = clock

    async def save(
        self,
        account_id: str,
        provider: str,
        tokens: OAuthTokens,
        integration_id: Optional[str | uuid.UUID] = None,
        *,
        expected_updated_at: Optional[datetime] = None,
    ) -> None:
        """
        Encrypt and persist tokens.

        With ``integration_id`` the matching row (scoped to the account and
        provider) is updated in place; ``expected_updated_at`` turns that into
        a compare-and-swap. Without it the row is upserted on
        (account_id, kind).
        """
        now = self._clock()
        blob = self._cipher.encrypt(tokens.to_credentials())
        metadata = SecurityMetadata.for_encryption(now).to_json()

        async with self._session_factory() as session:
            async with session.begin():
                if integration_id is not None:
                    await self._update_by_id(
                        session, account_id, provider, integration_id, blob, metadata, now, expected_updated_at
                    )
                else:
                    await self._upsert(session, account_id, provider, blob, metadata, now)

    async def _update_by_id(
        self,
        session: AsyncSession,
        account_id: str,
        provider: str,
        integration_id: str | uuid.UUID,
        blob: str,
        metadata: Dict[str, Any],
        now: datetime,
        expected_updated_at: Optional[datetime],
    ) -> None:
        row_id = _to_uuid(integration_id)
        if row_id is None:
            raise NoIntegrationFound(provider, account_id)

        conditions = [
            Automation.id == row_id,
            Automation.account_id == account_id,
            Automation.kind == provider,
        ]
        if expected_updated_at is not None:
            conditions.append(Automation.updated_at == expected_updated_at)

        result = await session.execute(
            update(Automation)
            .where(*conditions)
            .values(credentials=blob, security_metadata=metadata, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Updated %s credentials for account %s (integration %s)", provider, account_id, row_id)
            return
        if expected_updated_at is not None:
            logger.warning("Credentials for %s/%s changed concurrently; refresh not saved", provider, account_id)
            raise RefreshConflict(
                f"Credentials for {provider} were modified by another request", provider
            )
        raise NoIntegrationFound(provider, account_id)

    async def _upsert(
        self,
        session: AsyncSession,
        account_id: str,
        provider: str,
        blob: str,
        metadata: Dict[str, Any],
        now: datetime,
    ) -> None:
        insert = _insert_for(session)
        stmt = insert(Automation).values(
            id=uuid.uuid4(),
            account_id=account_id,
            kind=provider,
            name=f"{display_name(provider)} Integration",
            credentials=blob,
            security_metadata=metadata,
            config={},
            enabled=True,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "kind"],
            set_={
                "credentials": stmt.excluded.credentials,
                "security_metadata": stmt.excluded.security_metadata,
                "enabled": True,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await session.execute(stmt)
        logger.info("Stored %s credentials for account %s", provider, account_id)

    async def load(self, account_id: str, provider: str) -> LoadedCredentials:
        """
        Return the most recently updated credentials for (account, provider).

        Raises ``NoIntegrationFound`` when no row carries credentials and
        ``DecryptionFailed`` when the stored value cannot be opened.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(Automation)
                .where(
                    Automation.account_id == account_id,
                    Automation.kind == provider,
                    Automation.credentials.is_not(None),
                )
                .order_by(Automation.updated_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()

        stored = stored_credentials_from_row(row) if row is not None else None
        if stored is None:
            raise NoIntegrationFound(provider, account_id)

        data = stored.reveal(self._cipher)
        try:
            tokens = OAuthTokens.from_credentials(data)
        except (ValidationError, ValueError, TypeError) as exc:
            raise DecryptionFailed(f"Stored credentials for {provider} are malformed", provider) from exc

        return LoadedCredentials(tokens=tokens, integration_id=row.id, updated_at=row.updated_at)

    async def clear(self, account_id: str, provider: str) -> int:
        """Null the credentials, mark them revoked and disable the row. Idempotent."""
        now = self._clock()
        metadata = SecurityMetadata.for_revocation(now).to_json()
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Automation)
                    .where(Automation.account_id == account_id, Automation.kind == provider)
                    .values(credentials=None, security_metadata=metadata, enabled=False, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
        logger.info("Cleared %s credentials for account %s (%d row(s))", provider, account_id, result.rowcount)
        return result.rowcount

    async def list_connections(self, account_id: str) -> List[Dict[str, Any]]:
        """All credential rows for an account, without any secret material."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Automation)
                .where(Automation.account_id == account_id)
                .order_by(Automation.kind)
            )
            rows = result.scalars().all()
        return [
            {
                "integration_id": str(r.id),
                "provider": r.kind,
                "name": r.name,
                "enabled": bool(r.enabled),
                "connected": r.credentials is not None,
                "revoked": bool((r.security_metadata or {}).get("revoked")),
                "updated_at": r.updated_at.isoformat() if r.updated_at else None,
            }
            for r in rows
        ]
