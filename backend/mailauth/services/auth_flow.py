"""Email authentication flows: register, verify, login, forgot/reset password.

Record states:
    Unregistered (no record)
    -> PendingVerification (record, verified=False, token pending)
    -> Verified (verified=True)
A verified record may go through forgot/reset any number of times without
leaving Verified; a successful reset also moves a pending record to
Verified. Nothing here ever deletes a record or un-verifies one.

Every method either returns its success value or raises:
    - AuthFlowError for a negative protocol outcome (rendered as 200)
    - InternalError when the store or notifier fails (rendered as 500)

Verification / reset links carry the record id and the token, both
encrypted with TokenCodec. Tokens are single-use: verification and reset
clear the stored token on success.
"""

import logging
import secrets
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import NoReturn

from mailauth.core.config import Settings
from mailauth.core.errors import InternalError
from mailauth.core.nonce import NonceGenerator
from mailauth.core.passwords import PasswordHasher
from mailauth.core.token_codec import TokenCodec
from mailauth.core.validation import (
    EmailNormalizer,
    MinLengthPolicy,
    PasswordPolicy,
    canonicalize_email,
    lowercase_email,
)
from mailauth.services.auth_errors import (
    CONFIRMATION_MISMATCH_MSG,
    AuthErrorCode,
    AuthFlowError,
    CollaboratorError,
    DuplicateEmailError,
)
from mailauth.services.credential_store import AuthRecord, CredentialStore
from mailauth.services.notifier import Notifier

logger = logging.getLogger(__name__)

# (encrypted id, encrypted token) -> absolute URL
UrlBuilder = Callable[[str, str], str]

_VERIFY_PATH = "/api/v1/auth/email/verify"
_RESET_PATH = "/api/v1/auth/email/reset-password"

# Login outcomes whose reason is coarsened when account state is not revealed
_LOGIN_FAILURES = frozenset(
    {
        AuthErrorCode.PASSWORD_NOT_SET,
        AuthErrorCode.PASSWORD_MISMATCH,
        AuthErrorCode.LOGIN_FAILURE_EMAIL,
        AuthErrorCode.ACCOUNT_NOT_VERIFIED,
        AuthErrorCode.LOGIN_FAILURE,
    }
)


def link_builder(base_url: str, path: str) -> UrlBuilder:
    """Build a UrlBuilder producing ``{base_url}{path}/{enc_id}/{enc_token}``."""
    root = base_url.rstrip("/") + path

    def build(encrypted_id: str, encrypted_token: str) -> str:
        return f"{root}/{encrypted_id}/{encrypted_token}"

    return build


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AuthConfig:
    """Pluggable policies for the auth flows.

    Attributes:
        normalize_email: Site transform applied after canonicalization.
        password_policy: Returns a rejection reason, or None if acceptable.
        token_ttl: Lifetime of verification / reset tokens.
        reveal_account_state: When False, login and forgot-password never
            disclose whether an address is registered or verified.
        verify_url: Builds the email-verification link.
        reset_url: Builds the password-reset link.
    """

    normalize_email: EmailNormalizer = lowercase_email
    password_policy: PasswordPolicy = field(default_factory=MinLengthPolicy)
    token_ttl: timedelta = timedelta(days=1)
    reveal_account_state: bool = True
    verify_url: UrlBuilder = field(
        default_factory=lambda: link_builder("http://localhost:8000", _VERIFY_PATH)
    )
    reset_url: UrlBuilder = field(
        default_factory=lambda: link_builder("http://localhost:8000", _RESET_PATH)
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        """Default policies parameterized by application settings."""
        return cls(
            password_policy=MinLengthPolicy(settings.password_min_length),
            token_ttl=timedelta(hours=settings.verification_token_ttl_hours),
            reveal_account_state=settings.auth_reveal_account_state,
            verify_url=link_builder(settings.backend_url, _VERIFY_PATH),
            reset_url=link_builder(settings.backend_url, _RESET_PATH),
        )


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Identity established by a successful login or verification.

    Attributes:
        record_id: Auth record id.
        email: Verified email address.
        method: "email" or "email-verify".
        message: Human-readable outcome message.
    """

    record_id: uuid.UUID
    email: str
    method: str
    message: str


@contextmanager
def _collaborator_call(operation: str) -> Iterator[None]:
    """Log collaborator failures with detail, surface a generic 500."""
    try:
        yield
    except CollaboratorError as exc:
        logger.error("%s failed: %s", operation, exc, exc_info=True)
        raise InternalError() from exc


def _tokens_match(stored: str | None, presented: str) -> bool:
    if stored is None:
        return False
    return secrets.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


class AuthFlow:
    """The email authentication state machine.

    One instance per request: the store is request-scoped, the codec,
    hasher and nonce generator are process-wide and injected.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        notifier: Notifier,
        codec: TokenCodec,
        hasher: PasswordHasher,
        nonces: NonceGenerator,
        config: AuthConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._codec = codec
        self._hasher = hasher
        self._nonces = nonces
        self._config = config or AuthConfig()
        self._clock = clock

    # =================================================================
    # Register
    # =================================================================

    async def register(self, email: str | None, password: str | None = None) -> str:
        """Register an address, or resend its pending verification email.

        Args:
            email: Address as entered.
            password: Optional initial password.

        Returns:
            Confirmation message naming the address the link was sent to.

        Raises:
            AuthFlowError: MISSING_EMAIL, INVALID_EMAIL_ADDRESS,
                WEAK_PASSWORD, ALREADY_REGISTERED or REGISTRATION_FAILURE.
            InternalError: If the store or notifier fails.
        """
        normalized = self._normalized_email(email)

        with _collaborator_call("register lookup"):
            record = await self._store.find_by_email(normalized)

        if record is None:
            if password is not None:
                self._check_strength(password)
            token = self._nonces.new_token()
            expires_at = self._clock() + self._config.token_ttl
            password_hash = self._hasher.hash(password) if password is not None else None
            with _collaborator_call("register create"):
                try:
                    record_id = await self._store.create(
                        normalized, password_hash, token, expires_at
                    )
                except DuplicateEmailError:
                    logger.warning("Concurrent registration for %s lost the race", normalized)
                    raise AuthFlowError(AuthErrorCode.REGISTRATION_FAILURE) from None
            logger.info("Registered %s as %s (pending verification)", normalized, record_id)
        elif record.verified:
            logger.warning("Registration for already verified %s", normalized)
            raise AuthFlowError(AuthErrorCode.ALREADY_REGISTERED)
        elif record.verification_token is not None:
            logger.info("Resending verification email for %s", record.id)
            record_id, token = record.id, record.verification_token
        else:
            logger.error("Record %s is unverified but has no pending token", record.id)
            raise AuthFlowError(AuthErrorCode.REGISTRATION_FAILURE)

        url = self._config.verify_url(*self._encrypt_link(record_id, token))
        with _collaborator_call("send verification email"):
            await self._notifier.send_verification(normalized, url)
        return f"A confirmation e-mail has been sent to {normalized}"

    # =================================================================
    # Forgot password
    # =================================================================

    async def forgot_password(self, email: str | None) -> str:
        """Issue a fresh token and email a password-reset link.

        Raises:
            AuthFlowError: MISSING_EMAIL, INVALID_EMAIL_ADDRESS or
                FORGOT_PASSWORD_FAILURE (unknown address, only when account
                state may be revealed).
            InternalError: If the store or notifier fails.
        """
        normalized = self._normalized_email(email)
        sent_message = f"A password reset e-mail has been sent to {normalized}"

        with _collaborator_call("forgot-password lookup"):
            record = await self._store.find_by_email(normalized)

        if record is None:
            logger.warning("Password reset requested for unknown address %s", normalized)
            if self._config.reveal_account_state:
                raise AuthFlowError(AuthErrorCode.FORGOT_PASSWORD_FAILURE)
            # Same crypto work as the real path
            self._encrypt_link(uuid.uuid4(), self._nonces.new_token())
            return sent_message

        token = self._nonces.new_token()
        expires_at = self._clock() + self._config.token_ttl
        with _collaborator_call("forgot-password set token"):
            await self._store.set_token(record.id, token, expires_at)

        url = self._config.reset_url(*self._encrypt_link(record.id, token))
        with _collaborator_call("send password reset email"):
            await self._notifier.send_password_reset(record.email, url)
        logger.info("Password reset link issued for %s", record.id)
        return sent_message

    # =================================================================
    # Verify email
    # =================================================================

    async def verify_email(
        self, encrypted_id: str, encrypted_token: str
    ) -> AuthenticatedIdentity:
        """Confirm ownership of an address via the emailed link.

        Raises:
            AuthFlowError: UNABLE_TO_DECRYPT, UNABLE_TO_PARSE_IDENTIFIER,
                INVALID_KEY, VERIFICATION_FAILURE or
                VERIFICATION_TOKEN_EXPIRED.
            InternalError: If the store fails.
        """
        record_id, token = self._decrypt_link(encrypted_id, encrypted_token)

        with _collaborator_call("verify lookup"):
            record = await self._store.find_by_id(record_id)

        if record is None or not record.email or not _tokens_match(
            record.verification_token, token
        ):
            logger.warning("Verification key rejected for record %s", record_id)
            raise AuthFlowError(AuthErrorCode.INVALID_KEY)

        self._check_expiry(record)

        with _collaborator_call("verify account"):
            found = await self._store.set_verified(record.id)
            if not found:
                logger.warning("Record %s disappeared during verification", record.id)
                raise AuthFlowError(AuthErrorCode.INVALID_KEY)
            await self._store.clear_token(record.id)

        logger.info("Email verified for record %s", record.id)
        message = "Address verified"
        if record.password_hash is None:
            message = "Address verified, please set a password"
        return AuthenticatedIdentity(
            record_id=record.id,
            email=record.email,
            method="email-verify",
            message=message,
        )

    # =================================================================
    # Login
    # =================================================================

    async def login(
        self, email: str | None, password: str | None
    ) -> AuthenticatedIdentity:
        """Check email + password.

        The identifier has passed address validation by the time the
        session is established, so the method tag is always "email".

        Raises:
            AuthFlowError: MISSING_EMAIL, MISSING_PASSWORD,
                INVALID_EMAIL_ADDRESS, PASSWORD_NOT_SET,
                ACCOUNT_NOT_VERIFIED, PASSWORD_MISMATCH,
                LOGIN_FAILURE_EMAIL or LOGIN_FAILURE.
            InternalError: If the store fails.
        """
        if not email:
            raise AuthFlowError(AuthErrorCode.MISSING_EMAIL)
        if password is None:
            raise AuthFlowError(AuthErrorCode.MISSING_PASSWORD)
        normalized = self._normalized_email(email)
        method = "email"

        with _collaborator_call("login lookup"):
            record = await self._store.find_by_email(normalized)

        if record is None:
            self._hasher.burn(password)
            self._login_failure(AuthErrorCode.LOGIN_FAILURE_EMAIL, normalized)
        elif not record.email:
            self._hasher.burn(password)
            self._login_failure(AuthErrorCode.LOGIN_FAILURE, normalized)
        elif not record.verified:
            self._hasher.burn(password)
            self._login_failure(AuthErrorCode.ACCOUNT_NOT_VERIFIED, normalized)
        elif record.password_hash is None:
            self._hasher.burn(password)
            self._login_failure(AuthErrorCode.PASSWORD_NOT_SET, normalized)
        elif not self._hasher.verify(password, record.password_hash):
            self._login_failure(AuthErrorCode.PASSWORD_MISMATCH, normalized)

        logger.info("Login succeeded for record %s via %s", record.id, method)
        return AuthenticatedIdentity(
            record_id=record.id,
            email=record.email,
            method=method,
            message="Login successful",
        )

    # =================================================================
    # Reset password
    # =================================================================

    async def reset_password(
        self,
        encrypted_id: str,
        encrypted_token: str,
        new_password: str | None,
        confirm_password: str | None,
    ) -> str:
        """Set a new password via the emailed reset link.

        Raises:
            AuthFlowError: MISSING_NEW_PASSWORD, MISSING_CONFIRM_PASSWORD,
                UNABLE_TO_DECRYPT, PASSWORD_MISMATCH,
                UNABLE_TO_PARSE_IDENTIFIER, WEAK_PASSWORD,
                INVALID_VERIFICATION_KEY, VERIFICATION_FAILURE or
                VERIFICATION_TOKEN_EXPIRED.
            InternalError: If the store fails.
        """
        if new_password is None:
            raise AuthFlowError(AuthErrorCode.MISSING_NEW_PASSWORD)
        if confirm_password is None:
            raise AuthFlowError(AuthErrorCode.MISSING_CONFIRM_PASSWORD)

        plain_id, token = self._decrypt_pair(encrypted_id, encrypted_token)
        if new_password != confirm_password:
            logger.warning("Password confirmation mismatch on reset")
            raise AuthFlowError(AuthErrorCode.PASSWORD_MISMATCH, CONFIRMATION_MISMATCH_MSG)
        record_id = self._parse_id(plain_id)
        self._check_strength(new_password)

        with _collaborator_call("reset lookup"):
            record = await self._store.find_by_id(record_id)

        if record is None or not _tokens_match(record.verification_token, token):
            logger.warning("Reset key rejected for record %s", record_id)
            raise AuthFlowError(AuthErrorCode.INVALID_VERIFICATION_KEY)

        self._check_expiry(record)

        password_hash = self._hasher.hash(new_password)
        # A used reset link proves control of the address
        with _collaborator_call("store new password"):
            await self._store.set_password_hash(record.id, password_hash)
            await self._store.set_verified(record.id)
            await self._store.clear_token(record.id)
        logger.info("Password updated for record %s", record.id)
        return "Password updated"

    # =================================================================
    # Helpers
    # =================================================================

    def _normalized_email(self, raw: str | None) -> str:
        if not raw:
            raise AuthFlowError(AuthErrorCode.MISSING_EMAIL)
        canonical = canonicalize_email(raw)
        if canonical is None:
            logger.warning("Rejected syntactically invalid email address")
            raise AuthFlowError(AuthErrorCode.INVALID_EMAIL_ADDRESS)
        return self._config.normalize_email(canonical)

    def _check_strength(self, password: str) -> None:
        reason = self._config.password_policy(password)
        if reason is not None:
            raise AuthFlowError(AuthErrorCode.WEAK_PASSWORD, reason)

    def _check_expiry(self, record: AuthRecord) -> None:
        if record.token_expires_at is None:
            logger.error("Record %s has a token but no expiry", record.id)
            raise AuthFlowError(AuthErrorCode.VERIFICATION_FAILURE)
        if self._clock() > record.token_expires_at:
            logger.warning("Expired token presented for record %s", record.id)
            raise AuthFlowError(AuthErrorCode.VERIFICATION_TOKEN_EXPIRED)

    def _encrypt_link(self, record_id: uuid.UUID, token: str) -> tuple[str, str]:
        return self._codec.encrypt(str(record_id)), self._codec.encrypt(token)

    def _decrypt_pair(self, encrypted_id: str, encrypted_token: str) -> tuple[str, str]:
        plain_id = self._codec.decrypt(encrypted_id)
        token = self._codec.decrypt(encrypted_token)
        if plain_id is None or token is None:
            logger.warning("Could not decrypt link parameters")
            raise AuthFlowError(AuthErrorCode.UNABLE_TO_DECRYPT)
        return plain_id, token

    @staticmethod
    def _parse_id(plain_id: str) -> uuid.UUID:
        try:
            return uuid.UUID(plain_id)
        except ValueError:
            logger.warning("Decrypted identifier is not a record id")
            raise AuthFlowError(AuthErrorCode.UNABLE_TO_PARSE_IDENTIFIER) from None

    def _decrypt_link(self, encrypted_id: str, encrypted_token: str) -> tuple[uuid.UUID, str]:
        plain_id, token = self._decrypt_pair(encrypted_id, encrypted_token)
        return self._parse_id(plain_id), token

    def _login_failure(self, reason: AuthErrorCode, email: str) -> NoReturn:
        """Log the precise reason, raise the client-facing one."""
        logger.warning("Login failed for %s: %s", email, reason.value)
        if self._config.reveal_account_state or reason not in _LOGIN_FAILURES:
            raise AuthFlowError(reason)
        raise AuthFlowError(AuthErrorCode.LOGIN_FAILURE)
