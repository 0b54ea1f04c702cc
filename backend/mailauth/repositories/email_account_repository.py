"""Repository for EmailAccount CRUD operations.

Provides database access for the email_accounts table. Emails passed in
are expected to be already canonicalized and normalized by the caller.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mailauth.models.email_account import EmailAccount

# Fields that may be updated via EmailAccountRepository.update().
# Security: Never add 'id', 'email', 'created_at', or 'updated_at'.
# 'verified' is excluded because it may only go false -> true; use
# mark_verified() for that transition.
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "password_hash",
        "verification_token",
        "token_expires_at",
    }
)


class EmailAccountRepository:
    """Stateless repository for EmailAccount table operations.

    All methods are static, no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> EmailAccount | None:
        """Fetch an account by primary key.

        Args:
            db: Async database session.
            account_id: UUID primary key.

        Returns:
            EmailAccount if found, None otherwise.
        """
        return await db.get(EmailAccount, account_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> EmailAccount | None:
        """Fetch an account by normalized email address.

        Args:
            db: Async database session.
            email: Normalized email address to look up.

        Returns:
            EmailAccount if found, None otherwise.
        """
        stmt = select(EmailAccount).where(EmailAccount.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        verification_token: str,
        token_expires_at: datetime,
        password_hash: str | None = None,
    ) -> EmailAccount:
        """Create a new unverified account.

        Args:
            db: Async database session.
            email: Normalized email address.
            verification_token: Freshly issued verification token.
            token_expires_at: Expiry of the token.
            password_hash: PasswordHasher output (None for link-only signup).

        Returns:
            Created EmailAccount with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        account = EmailAccount(
            email=email,
            password_hash=password_hash,
            verification_token=verification_token,
            token_expires_at=token_expires_at,
            verified=False,
        )
        db.add(account)
        await db.flush()
        await db.refresh(account)
        return account

    @staticmethod
    async def update(
        db: AsyncSession,
        account_id: uuid.UUID,
        **kwargs: str | datetime | None,
    ) -> EmailAccount | None:
        """Update account fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            account_id: UUID of the account to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated EmailAccount if found, None if it does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        account = await db.get(EmailAccount, account_id)
        if account is None:
            return None

        for field, value in kwargs.items():
            setattr(account, field, value)

        await db.flush()
        await db.refresh(account)
        return account

    @staticmethod
    async def mark_verified(db: AsyncSession, account_id: uuid.UUID) -> bool:
        """Set verified=True. Idempotent.

        Args:
            db: Async database session.
            account_id: UUID of the account.

        Returns:
            True if the account exists, False otherwise.
        """
        account = await db.get(EmailAccount, account_id)
        if account is None:
            return False
        if not account.verified:
            account.verified = True
            await db.flush()
        return True
