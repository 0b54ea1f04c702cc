"""Shared dependencies for API endpoints.

Process-wide auth components (token codec, password hasher, nonce
generator, notifier) are built once from settings. The credential store
and the AuthFlow wrapping it are per request, bound to the request's
database session. Tests swap any of these via app.dependency_overrides.
"""

import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mailauth.core.auth import decode_jwt, session_secret
from mailauth.core.config import settings
from mailauth.core.database import get_db
from mailauth.core.email import build_notifier
from mailauth.core.nonce import NonceGenerator
from mailauth.core.passwords import PasswordHasher
from mailauth.core.token_codec import TokenCodec
from mailauth.services.auth_flow import AuthConfig, AuthFlow
from mailauth.services.credential_store import CredentialStore, SqlCredentialStore
from mailauth.services.notifier import Notifier

DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Process-wide components
# =============================================================================


@lru_cache(maxsize=1)
def get_token_codec() -> TokenCodec:
    """TokenCodec keyed from TOKEN_ENCRYPTION_KEY (+ previous keys)."""
    return TokenCodec.from_settings(settings)


@lru_cache(maxsize=1)
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@lru_cache(maxsize=1)
def get_nonce_generator() -> NonceGenerator:
    return NonceGenerator()


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    return build_notifier(settings)


@lru_cache(maxsize=1)
def get_auth_config() -> AuthConfig:
    return AuthConfig.from_settings(settings)


def reset_auth_components() -> None:
    """Drop cached components so the next request rebuilds them from settings."""
    get_token_codec.cache_clear()
    get_password_hasher.cache_clear()
    get_nonce_generator.cache_clear()
    get_notifier.cache_clear()
    get_auth_config.cache_clear()


# =============================================================================
# Per-request components
# =============================================================================


def get_credential_store(db: DbSession) -> CredentialStore:
    return SqlCredentialStore(db)


def get_auth_flow(
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    nonces: Annotated[NonceGenerator, Depends(get_nonce_generator)],
    config: Annotated[AuthConfig, Depends(get_auth_config)],
) -> AuthFlow:
    """Assemble the auth flow for one request."""
    return AuthFlow(
        store=store,
        notifier=notifier,
        codec=codec,
        hasher=hasher,
        nonces=nonces,
        config=config,
    )


Auth = Annotated[AuthFlow, Depends(get_auth_flow)]


# =============================================================================
# Session identity
# =============================================================================


@dataclass(frozen=True)
class SessionIdentity:
    """Identity carried by the session cookie.

    Attributes:
        record_id: Auth record id (sub claim).
        email: Verified email address.
        method: How the session was established (amr claim).
    """

    record_id: uuid.UUID
    email: str
    method: str


def get_optional_identity(request: Request) -> SessionIdentity | None:
    """Decode the session cookie, returning None when absent or invalid.

    Security: the reason a cookie is rejected (expired, bad signature,
    wrong audience) is never reported back to the client.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        return None
    claims = decode_jwt(token, secret=session_secret())
    if claims is None:
        return None
    try:
        return SessionIdentity(
            record_id=uuid.UUID(claims["sub"]),
            email=claims["email"],
            method=claims.get("amr", "email"),
        )
    except (KeyError, ValueError, TypeError):
        return None


OptionalIdentity = Annotated[SessionIdentity | None, Depends(get_optional_identity)]
