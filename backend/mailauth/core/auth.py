"""Session helpers: JWT creation, decoding and cookie management.

Once an auth flow succeeds (login, email verification) the caller is
considered authenticated under the record's identity. That identity is
carried in a signed JWT stored in an httpOnly cookie.
"""

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from fastapi import Response

from mailauth.core.config import settings

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"

_ephemeral_secret: str | None = None


def session_secret() -> str:
    """Return the JWT signing secret.

    Outside production an unset AUTH_SECRET falls back to a per-process
    random secret (sessions do not survive a restart). Production settings
    validation refuses an empty secret.
    """
    global _ephemeral_secret

    secret = settings.auth_secret.get_secret_value()
    if secret:
        return secret
    if _ephemeral_secret is None:
        logger.warning("AUTH_SECRET not set, using an ephemeral session secret")
        _ephemeral_secret = secrets.token_hex(32)
    return _ephemeral_secret


def create_jwt(
    *,
    user_id: str,
    email: str,
    method: str,
    secret: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT.

    Args:
        user_id: Auth record id for the sub claim.
        email: Verified email address of the identity.
        method: How the identity was established ("email" or
            "email-verify"), stored in the amr claim.
        secret: HMAC signing secret.
        expires_delta: Time until expiration. Defaults to the session TTL.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    ttl = expires_delta or timedelta(minutes=settings.session_ttl_minutes)
    payload = {
        "sub": user_id,
        "email": email,
        "amr": method,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + ttl,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_jwt(token: str, *, secret: str) -> dict[str, Any] | None:
    """Decode and verify a session JWT.

    Returns:
        Claims if signature, expiry, audience and issuer check out,
        None otherwise.
    """
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
    except jwt.InvalidTokenError:
        return None


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly JWT cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=settings.session_ttl_minutes * 60,
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_auth_cookie() for the browser to
    delete it.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )
