import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from mailauth.core.config import settings
from mailauth.core.nonce import NonceGenerator
from mailauth.core.passwords import PasswordHasher
from mailauth.core.token_codec import TokenCodec
from mailauth.models.base import Base
from mailauth.services.auth_flow import AuthConfig, AuthFlow, link_builder
from tests.fakes import FrozenClock, InMemoryCredentialStore, RecordingNotifier

# In-memory SQLite shared across connections of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

TEST_BASE_URL = "http://test"

TEST_CSRF_TOKEN = "test-csrf-token"  # nosec B105

_BCRYPT_ROUNDS = 4  # Low cost factor for fast tests


def create_test_jwt(
    record_id: uuid.UUID,
    *,
    email: str = "alice@example.com",
    method: str = "email",
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT for test authentication.

    Args:
        record_id: Record UUID to encode in the sub claim.
        email: Email claim.
        method: amr claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(record_id),
        "email": email,
        "amr": method,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Auth components
# =============================================================================


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=_BCRYPT_ROUNDS)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TokenCodec.generate_key())


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        verify_url=link_builder(TEST_BASE_URL, "/api/v1/auth/email/verify"),
        reset_url=link_builder(TEST_BASE_URL, "/api/v1/auth/email/reset-password"),
    )


@pytest.fixture
def auth_flow(store, notifier, codec, hasher, clock, auth_config) -> AuthFlow:
    """AuthFlow wired to in-memory collaborators and a frozen clock."""
    return AuthFlow(
        store=store,
        notifier=notifier,
        codec=codec,
        hasher=hasher,
        nonces=NonceGenerator(),
        config=auth_config,
        clock=clock,
    )


# =============================================================================
# API client
# =============================================================================


@pytest_asyncio.fixture
async def client(
    store, notifier, codec, hasher, auth_config
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client carrying a valid CSRF cookie + header.

    Sets up:
    - In-memory credential store and recording notifier via dependency override
    - Test codec, hasher and auth config via dependency override
    - Test session secret

    Yields:
        Configured AsyncClient for making API requests.
    """
    from mailauth.api.deps import (
        get_auth_config,
        get_credential_store,
        get_notifier,
        get_password_hasher,
        get_token_codec,
    )
    from mailauth.main import app

    app.dependency_overrides[get_credential_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_token_codec] = lambda: codec
    app.dependency_overrides[get_password_hasher] = lambda: hasher
    app.dependency_overrides[get_auth_config] = lambda: auth_config

    original_auth_secret = settings.auth_secret
    original_cookie_secure = settings.auth_cookie_secure
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    # Test transport is plain http; secure cookies would not be sent back
    settings.auth_cookie_secure = False

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url=TEST_BASE_URL,
        cookies={settings.csrf_cookie_name: TEST_CSRF_TOKEN},
        headers={settings.csrf_header_name: TEST_CSRF_TOKEN},
    ) as ac:
        yield ac

    settings.auth_secret = original_auth_secret
    settings.auth_cookie_secure = original_cookie_secure
    app.dependency_overrides.clear()
