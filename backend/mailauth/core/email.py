"""Email sending via Resend API.

Simple HTTP POST to Resend for verification and password-reset emails,
each with a plain-text and an HTML part. Without an API key (local
development) links are written to the log instead.
"""

import html
import logging

import httpx

from mailauth.core.config import Settings
from mailauth.services.auth_errors import NotificationError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0

_VERIFY_SUBJECT = "Verify your email address"
_VERIFY_LEAD = "Please confirm your email address by clicking on the link below."
_RESET_SUBJECT = "Reset your password"
_RESET_LEAD = "Please follow the link below to reset your password."


def _text_body(lead: str, url: str) -> str:
    return f"{lead}\n\n{url}\n\nThank you\n"


def _html_body(lead: str, url: str) -> str:
    safe_url = html.escape(url, quote=True)
    return (
        f"<p>{html.escape(lead)}</p>"
        f'<p><a href="{safe_url}">{safe_url}</a></p>'
        "<p>Thank you</p>"
    )


class ResendNotifier:
    """Notifier delivering through the Resend HTTP API."""

    def __init__(self, *, api_key: str, sender: str) -> None:
        self._api_key = api_key
        self._sender = sender

    async def send_verification(self, email: str, url: str) -> None:
        await self._send(email, _VERIFY_SUBJECT, _VERIFY_LEAD, url)

    async def send_password_reset(self, email: str, url: str) -> None:
        await self._send(email, _RESET_SUBJECT, _RESET_LEAD, url)

    async def _send(self, to_email: str, subject: str, lead: str, url: str) -> None:
        """POST one message to Resend.

        Raises:
            NotificationError: On network failure or non-2xx response.
        """
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": to_email,
                        "subject": subject,
                        "text": _text_body(lead, url),
                        "html": _html_body(lead, url),
                    },
                    timeout=_RESEND_TIMEOUT,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Failed to send '{subject}' email"
            raise NotificationError(msg) from exc


class LoggingNotifier:
    """Development notifier: writes the link to the log instead of mailing it."""

    async def send_verification(self, email: str, url: str) -> None:
        logger.info("%s for %s. Copy/paste this URL in your browser: %s", _VERIFY_SUBJECT, email, url)

    async def send_password_reset(self, email: str, url: str) -> None:
        logger.info("%s for %s. Copy/paste this URL in your browser: %s", _RESET_SUBJECT, email, url)


def build_notifier(settings: Settings) -> ResendNotifier | LoggingNotifier:
    """Pick the notifier for the configured environment."""
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.warning("RESEND_API_KEY not set, account emails will only be logged")
        return LoggingNotifier()
    return ResendNotifier(api_key=api_key, sender=settings.email_from)
