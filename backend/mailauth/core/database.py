"""Async database engine and session management.

Configures the SQLAlchemy async engine backing the credential store and
provides one session per request. Credential store operations commit on
their own; the request-level commit only flushes what is left.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mailauth.core.config import settings

engine = create_async_engine(
    settings.database_url,
    # No SQL echo: statements carry password hashes and verification tokens
    echo=False,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a request-scoped database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
