"""Notifier interface: out-of-band delivery of verification and reset links.

Implementations live in mailauth.core.email. Both methods raise
NotificationError when the message cannot be handed to the transport; the
auth flow surfaces that as a generic failure and does not retry.
"""

from typing import Protocol


class Notifier(Protocol):
    """Sends account emails."""

    async def send_verification(self, email: str, url: str) -> None:
        """Send the email-verification link."""
        ...

    async def send_password_reset(self, email: str, url: str) -> None:
        """Send the password-reset link."""
        ...
