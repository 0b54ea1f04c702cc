"""Email account model - the persisted email credential row.

One row per normalized email address. Created unverified by registration,
mutated by verification, forgot-password and reset-password. Never
deleted by the auth flows.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from mailauth.models.base import Base, TimestampMixin


class EmailAccount(Base, TimestampMixin):
    """Email credential row.

    Attributes:
        id: UUID primary key (generated client-side, portable across backends).
        email: Canonical + normalized email. Unique; the database constraint
            is what prevents duplicate concurrent registrations.
        password_hash: Produced by PasswordHasher. NULL = no password set.
        verification_token: Outstanding verification / reset token. NULL
            once used.
        token_expires_at: Expiry of verification_token.
        verified: True once email ownership has been confirmed. Never reset.
    """

    __tablename__ = "email_accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    verification_token: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    token_expires_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
