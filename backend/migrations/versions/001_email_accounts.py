"""Create the email_accounts table.

Revision ID: 001_email_accounts
Revises:
Create Date: 2026-10-19

One row per normalized email address holding the password hash, the
outstanding verification / reset token and the verified flag.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_email_accounts"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "email_accounts",
        # Generated by the application (uuid4), no database extension needed
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("verification_token", sa.String(255), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    # Unique email is what stops two concurrent registrations of one address
    op.create_index(
        "idx_email_accounts_email", "email_accounts", ["email"], unique=True
    )


def downgrade() -> None:
    op.drop_index("idx_email_accounts_email", table_name="email_accounts")
    op.drop_table("email_accounts")
