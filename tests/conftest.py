"""Pytest configuration and fixtures for media accounts tests.

Tests run against an in-memory SQLite database (aiosqlite). Every test gets
a fresh schema; API tests share the test session through a ``get_db``
dependency override.
"""

import os
from collections.abc import AsyncGenerator, Generator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
TEST_JWT_SECRET = "test-jwt-secret-key-0123456789abcdefghijklmnop"
TEST_SERVICE_TOKEN = "test-service-token-zyxwvutsrqponmlkjihgfedcba"
os.environ["JWT_SECRET_KEY"] = TEST_JWT_SECRET
os.environ["SERVICE_TOKEN"] = TEST_SERVICE_TOKEN
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["ROUTE_RULES_FILE"] = ""

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Test user credentials
TEST_USER_EMAIL = "listener@example.com"
TEST_USER_PASSWORD = "listener-password-123"


# --- Rate Limiter Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> Generator[None, None, None]:
    """Reset login rate-limit state around each test."""
    from media_accounts.api.dependencies import reset_login_attempts

    reset_login_attempts()
    yield
    reset_login_attempts()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a fresh in-memory database engine for one test."""
    from media_accounts.models.base import BaseModel

    engine = create_async_engine(
        TEST_DATABASE_URL,
        # A single shared connection keeps the in-memory database alive
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# --- Service Fixtures ---


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self):
        from media_accounts.models.base import utcnow

        self.now = utcnow().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec():
    from media_accounts.services.token_codec import TokenCodec

    return TokenCodec(secret=TEST_JWT_SECRET)


@pytest.fixture
def session_manager(db_session, codec, clock):
    from media_accounts.services.sessions import SessionManager

    return SessionManager(
        session=db_session,
        codec=codec,
        access_ttl_seconds=3600,
        refresh_ttl_seconds=7 * 86400,
        clock=clock,
    )


class RecordingEmailSender:
    """Email sender keeping the last message per address so tests can read codes back."""

    def __init__(self):
        self.outbox: dict[str, dict[str, str]] = {}

    async def send_verification(self, email: str, first_name: str, token: str) -> None:
        self.outbox[email] = {"kind": "verification", "token": token}

    async def send_recovery_code(self, email: str, first_name: str, code: str) -> None:
        self.outbox[email] = {"kind": "recovery", "code": code}

    async def send_password_changed(self, email: str, first_name: str) -> None:
        self.outbox[email] = {"kind": "password_changed"}


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def account_service(db_session, session_manager, email_sender, clock):
    from media_accounts.services.accounts import AccountService

    return AccountService(
        session=db_session,
        sessions=session_manager,
        email_sender=email_sender,
        clock=clock,
    )


# --- API Client Fixtures ---


class FakeIdentityVerifier:
    """External identity verifier accepting ``valid:<subject>:<email>`` tokens."""

    async def verify(self, id_token: str):
        from media_accounts.services.errors import InvalidExternalTokenError
        from media_accounts.services.external_identity import ExternalIdentity

        parts = id_token.split(":")
        if len(parts) != 3 or parts[0] != "valid":
            raise InvalidExternalTokenError("External identity token is invalid or expired")
        return ExternalIdentity(
            subject=parts[1], email=parts[2], first_name="Ext", last_name="User"
        )


@pytest.fixture
def app():
    from media_accounts.main import app

    return app


@pytest_asyncio.fixture(scope="function")
async def async_client(app, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from media_accounts.api.dependencies import get_email_sender, get_identity_verifier
    from media_accounts.core.database import get_db

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    sender = RecordingEmailSender()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: sender
    app.dependency_overrides[get_identity_verifier] = lambda: FakeIdentityVerifier()
    app.state.test_email_sender = sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def outbox(app, async_client) -> dict[str, dict[str, str]]:
    """Messages captured by the email sender of the current ``async_client``."""
    return app.state.test_email_sender.outbox


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating users directly in the database."""
    from media_accounts.models.user import AccountType, User
    from media_accounts.services.passwords import hash_password

    counter = {"n": 0}

    async def _create_user(
        email: str | None = None,
        password: str | None = TEST_USER_PASSWORD,
        first_name: str = "Test",
        last_name: str | None = "User",
        account_type: AccountType = AccountType.NORMAL,
        artist_id: int | None = None,
        is_active: bool = True,
        email_verified: bool = True,
        allows_external_login: bool = False,
        **kwargs,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password) if password else None,
            first_name=first_name,
            last_name=last_name,
            account_type=account_type,
            artist_id=artist_id,
            slug=kwargs.pop("slug", f"test-user-{counter['n']}"),
            is_active=is_active,
            email_verified=email_verified,
            allows_external_login=allows_external_login,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest_asyncio.fixture
async def verified_user(user_factory):
    """An active, verified listener account."""
    return await user_factory(email=TEST_USER_EMAIL)


@pytest_asyncio.fixture
async def auth_tokens(async_client: AsyncClient, verified_user) -> dict[str, str]:
    """Log in the verified user and return the login response body."""
    response = await async_client.post(
        "/api/users/login",
        json={"email": TEST_USER_EMAIL, "password": TEST_USER_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def auth_headers(auth_tokens: dict[str, str]) -> dict[str, str]:
    """Authorization headers carrying the verified user's access token."""
    return {"Authorization": f"Bearer {auth_tokens['token']}"}


@pytest.fixture
def service_headers() -> dict[str, str]:
    return {"X-Service-Token": TEST_SERVICE_TOKEN}
