"""
Shared fixtures: a controllable clock, provider registry, an in-memory
SQLite database and a Fernet cipher.
"""

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from connectors.encryption import CredentialCipher
from connectors.registry import ProviderRegistry
from database.models import Base
from tests.helpers import FakeClock, make_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(Fernet.generate_key())


@pytest.fixture
def registry():
    return ProviderRegistry(
        [
            make_config("slack"),
            make_config("notion", scopes=("read_content", "update_content")),
            make_config("google_sheets", scopes=("https://www.googleapis.com/auth/spreadsheets",)),
        ]
    )


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
