"""Test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (aiosqlite, StaticPool so the
single connection survives across sessions) with tables created from the
model metadata. Email delivery is replaced by an AsyncMock sender.
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from account_lifecycle.config import settings
from account_lifecycle.database import Base, get_db
from account_lifecycle.main import app
from account_lifecycle.models.account import Account
from account_lifecycle.routers.auth import get_notifier
from account_lifecycle.services.email import Notifier
from account_lifecycle.services.store import AccountStore
from account_lifecycle.utils.crypto import hash_password

TEST_PASSWORD = "Secret123!"
TEST_BASE_URL = "http://test.local"


def aware(value: datetime | None) -> datetime | None:
    """SQLite hands datetimes back naive; everything is stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@pytest.fixture(autouse=True)
def _isolate_settings() -> None:
    """Snapshot settings before each test and restore after to prevent mutation bleed."""
    original = settings.model_dump()
    object.__setattr__(settings, "bcrypt_rounds", 4)
    object.__setattr__(settings, "base_url", TEST_BASE_URL)
    object.__setattr__(settings, "email_backend", "log")
    object.__setattr__(settings, "store_raw_confirmation_tokens", False)
    yield  # type: ignore[misc]
    for key, value in original.items():
        object.__setattr__(settings, key, value)


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(settings.test_database_url, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite, so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(db_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> AccountStore:
    return AccountStore(db_session)


@pytest.fixture
def email_sender() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def notifier(email_sender: AsyncMock) -> Notifier:
    return Notifier(sender=email_sender)


@pytest.fixture
def make_account(store: AccountStore) -> Callable[..., Awaitable[Account]]:
    """Factory inserting an account directly, bypassing registration."""

    async def _make(
        username: str = "nova",
        email: str = "nova@x.com",
        password: str = TEST_PASSWORD,
        is_confirmed: bool = False,
        **fields: object,
    ) -> Account:
        account = Account(
            account_id=uuid.uuid4(),
            username=username,
            email=email,
            password_hash=hash_password(password, rounds=4),
            is_confirmed=is_confirmed,
            **fields,
        )
        return await store.add(account)

    return _make


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    notifier: Notifier,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with overridden DB and notifier dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def sent_link(email_sender: AsyncMock) -> str:
    """Pull the link out of the last email handed to the mock sender."""
    message = email_sender.send.call_args.args[0]
    for line in message.text.splitlines():
        if line.startswith(TEST_BASE_URL):
            return line
    raise AssertionError("No link found in email body")


@pytest.fixture
def last_token(email_sender: AsyncMock) -> Callable[[], str]:
    return lambda: sent_link(email_sender).rsplit("/", 1)[1]
