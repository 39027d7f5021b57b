"""
SQLAlchemy ORM models for integration rows.

One ``automations`` row per (account_id, kind) carries the encrypted OAuth
credentials for that provider plus the metadata needed for key rotation
and revocation auditing.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Automation(Base):
    __tablename__ = "automations"
    __table_args__ = (
        UniqueConstraint("account_id", "kind", name="uq_automations_account_kind"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    name = Column(String(128), nullable=False, default="")
    credentials = Column(Text, nullable=True)
    security_metadata = Column(JSONType, nullable=False, default=dict)
    config = Column(JSONType, nullable=False, default=dict)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)
