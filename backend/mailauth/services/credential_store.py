"""CredentialStore interface and its SQL implementation.

The auth flows never touch ORM objects. The store hands out immutable
AuthRecord snapshots and exposes explicit field-level updates, each
committed on its own, so concurrency control stays with the database
(the unique email constraint prevents duplicate registrations).
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mailauth.models.email_account import EmailAccount
from mailauth.repositories.email_account_repository import EmailAccountRepository
from mailauth.services.auth_errors import CredentialStoreError, DuplicateEmailError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthRecord:
    """Read-only snapshot of a persisted email credential.

    Attributes:
        id: Stable record identifier.
        email: Canonical + normalized email address.
        password_hash: PasswordHasher output, None if no password is set.
        verification_token: Outstanding token, None when none is pending.
        token_expires_at: Expiry of verification_token (timezone-aware).
        verified: Whether email ownership has been confirmed.
    """

    id: uuid.UUID
    email: str
    password_hash: str | None
    verification_token: str | None
    token_expires_at: datetime | None
    verified: bool


class CredentialStore(Protocol):
    """Persistence operations the auth flows depend on."""

    async def find_by_email(self, email: str) -> AuthRecord | None: ...

    async def find_by_id(self, record_id: uuid.UUID) -> AuthRecord | None: ...

    async def create(
        self,
        email: str,
        password_hash: str | None,
        token: str,
        expires_at: datetime,
    ) -> uuid.UUID:
        """Insert an unverified record. Raises DuplicateEmailError on conflict."""
        ...

    async def set_verified(self, record_id: uuid.UUID) -> bool:
        """Mark verified (idempotent). Returns whether the record exists."""
        ...

    async def set_password_hash(self, record_id: uuid.UUID, password_hash: str) -> None: ...

    async def set_token(self, record_id: uuid.UUID, token: str, expires_at: datetime) -> None: ...

    async def clear_token(self, record_id: uuid.UUID) -> None: ...

    async def get_token(self, record_id: uuid.UUID) -> str | None: ...

    async def get_expiry(self, record_id: uuid.UUID) -> datetime | None: ...

    async def get_email(self, record_id: uuid.UUID) -> str | None: ...

    async def get_password_hash(self, record_id: uuid.UUID) -> str | None: ...


def _aware(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (backends without tz support)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_auth_record(account: EmailAccount) -> AuthRecord:
    """Snapshot an ORM row."""
    return AuthRecord(
        id=account.id,
        email=account.email,
        password_hash=account.password_hash,
        verification_token=account.verification_token,
        token_expires_at=_aware(account.token_expires_at),
        verified=account.verified,
    )


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate database exceptions into CredentialStoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        msg = f"Credential store operation '{operation}' failed"
        raise CredentialStoreError(msg) from exc


class SqlCredentialStore:
    """CredentialStore backed by the email_accounts table.

    Bound to one AsyncSession (one request). Every mutation is committed
    immediately.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_email(self, email: str) -> AuthRecord | None:
        with _store_errors("find_by_email"):
            account = await EmailAccountRepository.get_by_email(self._db, email)
        return to_auth_record(account) if account else None

    async def find_by_id(self, record_id: uuid.UUID) -> AuthRecord | None:
        with _store_errors("find_by_id"):
            account = await EmailAccountRepository.get_by_id(self._db, record_id)
        return to_auth_record(account) if account else None

    async def create(
        self,
        email: str,
        password_hash: str | None,
        token: str,
        expires_at: datetime,
    ) -> uuid.UUID:
        try:
            account = await EmailAccountRepository.create(
                self._db,
                email=email,
                password_hash=password_hash,
                verification_token=token,
                token_expires_at=expires_at,
            )
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            raise DuplicateEmailError("Email already registered") from exc
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise CredentialStoreError("Credential store operation 'create' failed") from exc
        return account.id

    async def set_verified(self, record_id: uuid.UUID) -> bool:
        with _store_errors("set_verified"):
            found = await EmailAccountRepository.mark_verified(self._db, record_id)
            await self._db.commit()
        return found

    async def set_password_hash(self, record_id: uuid.UUID, password_hash: str) -> None:
        await self._update(record_id, password_hash=password_hash)

    async def set_token(self, record_id: uuid.UUID, token: str, expires_at: datetime) -> None:
        await self._update(record_id, verification_token=token, token_expires_at=expires_at)

    async def clear_token(self, record_id: uuid.UUID) -> None:
        await self._update(record_id, verification_token=None)

    async def get_token(self, record_id: uuid.UUID) -> str | None:
        record = await self.find_by_id(record_id)
        return record.verification_token if record else None

    async def get_expiry(self, record_id: uuid.UUID) -> datetime | None:
        record = await self.find_by_id(record_id)
        return record.token_expires_at if record else None

    async def get_email(self, record_id: uuid.UUID) -> str | None:
        record = await self.find_by_id(record_id)
        return record.email if record else None

    async def get_password_hash(self, record_id: uuid.UUID) -> str | None:
        record = await self.find_by_id(record_id)
        return record.password_hash if record else None

    async def _update(self, record_id: uuid.UUID, **fields: str | datetime | None) -> None:
        with _store_errors("update"):
            account = await EmailAccountRepository.update(self._db, record_id, **fields)
            await self._db.commit()
        if account is None:
            logger.warning("Update of %s skipped: no such record", record_id)
