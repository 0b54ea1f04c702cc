"""SQLAlchemy ORM models.

All models are exported from this module for convenient imports:
    from mailauth.models import Base, EmailAccount

Models:
- base.py: Base, TimestampMixin
- email_account.py: EmailAccount
"""

from mailauth.models.base import Base, TimestampMixin
from mailauth.models.email_account import EmailAccount

__all__ = [
    "Base",
    "EmailAccount",
    "TimestampMixin",
]
