"""Auth flow outcomes and collaborator failures.

Error Handling Strategy:
    - Input errors (missing field, bad address, weak password, confirmation
      mismatch): specific, safe-to-disclose message
    - Token errors (decrypt, parse, mismatch, expiry): a small set of
      generic messages that never say which sub-check failed
    - State errors (no record, inconsistent record): generic failure,
      full detail only in the logs
    - Collaborator errors (store, notifier): generic 500, never retried

Protocol outcomes are rendered as HTTP 200 with an error envelope: they
are answers, not server faults. Collaborator errors are server faults.
"""

from enum import Enum

from mailauth.core.errors import APIError


class AuthErrorCode(str, Enum):
    """Negative outcomes of the auth flows."""

    MISSING_EMAIL = "MISSING_EMAIL"
    MISSING_PASSWORD = "MISSING_PASSWORD"
    MISSING_NEW_PASSWORD = "MISSING_NEW_PASSWORD"
    MISSING_CONFIRM_PASSWORD = "MISSING_CONFIRM_PASSWORD"
    INVALID_EMAIL_ADDRESS = "INVALID_EMAIL_ADDRESS"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    REGISTRATION_FAILURE = "REGISTRATION_FAILURE"
    FORGOT_PASSWORD_FAILURE = "FORGOT_PASSWORD_FAILURE"
    UNABLE_TO_DECRYPT = "UNABLE_TO_DECRYPT"
    UNABLE_TO_PARSE_IDENTIFIER = "UNABLE_TO_PARSE_IDENTIFIER"
    INVALID_KEY = "INVALID_KEY"
    INVALID_VERIFICATION_KEY = "INVALID_VERIFICATION_KEY"
    VERIFICATION_FAILURE = "VERIFICATION_FAILURE"
    VERIFICATION_TOKEN_EXPIRED = "VERIFICATION_TOKEN_EXPIRED"
    PASSWORD_NOT_SET = "PASSWORD_NOT_SET"
    ACCOUNT_NOT_VERIFIED = "ACCOUNT_NOT_VERIFIED"
    PASSWORD_MISMATCH = "PASSWORD_MISMATCH"
    LOGIN_FAILURE_EMAIL = "LOGIN_FAILURE_EMAIL"
    LOGIN_FAILURE = "LOGIN_FAILURE"


_INVALID_LINK_MSG = "Invalid or expired verification link"
_INVALID_CREDENTIALS_MSG = "Invalid email or password"

DEFAULT_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.MISSING_EMAIL: "No email provided",
    AuthErrorCode.MISSING_PASSWORD: "No password provided",
    AuthErrorCode.MISSING_NEW_PASSWORD: "No new password provided",
    AuthErrorCode.MISSING_CONFIRM_PASSWORD: "No confirmation password provided",
    AuthErrorCode.INVALID_EMAIL_ADDRESS: "Invalid email address provided",
    AuthErrorCode.WEAK_PASSWORD: "Password is too weak",
    AuthErrorCode.ALREADY_REGISTERED: "This email address is already registered",
    AuthErrorCode.REGISTRATION_FAILURE: "Registration failed, please try again",
    AuthErrorCode.FORGOT_PASSWORD_FAILURE: "Unable to send a password reset email",
    AuthErrorCode.UNABLE_TO_DECRYPT: _INVALID_LINK_MSG,
    AuthErrorCode.UNABLE_TO_PARSE_IDENTIFIER: _INVALID_LINK_MSG,
    AuthErrorCode.INVALID_KEY: _INVALID_LINK_MSG,
    AuthErrorCode.INVALID_VERIFICATION_KEY: _INVALID_LINK_MSG,
    AuthErrorCode.VERIFICATION_FAILURE: "Email verification failed",
    AuthErrorCode.VERIFICATION_TOKEN_EXPIRED: "This verification link has expired",
    AuthErrorCode.PASSWORD_NOT_SET: _INVALID_CREDENTIALS_MSG,
    AuthErrorCode.ACCOUNT_NOT_VERIFIED: (
        "Your account has not been verified yet. "
        "Please check your inbox for the verification link."
    ),
    AuthErrorCode.PASSWORD_MISMATCH: _INVALID_CREDENTIALS_MSG,
    AuthErrorCode.LOGIN_FAILURE_EMAIL: _INVALID_CREDENTIALS_MSG,
    AuthErrorCode.LOGIN_FAILURE: _INVALID_CREDENTIALS_MSG,
}

# Confirmation mismatch on reset is an input error, not a credential check
CONFIRMATION_MISMATCH_MSG = "Passwords did not match, please try again"


class AuthFlowError(APIError):
    """A terminal negative outcome of an auth flow (HTTP 200).

    Attributes:
        reason: The outcome, as an AuthErrorCode.
    """

    def __init__(self, reason: AuthErrorCode, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(
            code=reason.value,
            message=message or DEFAULT_MESSAGES[reason],
            status_code=200,
        )


class CollaboratorError(RuntimeError):
    """An external collaborator (store, notifier) failed."""


class CredentialStoreError(CollaboratorError):
    """The credential store could not complete an operation."""


class DuplicateEmailError(CredentialStoreError):
    """A record with the same normalized email already exists."""


class NotificationError(CollaboratorError):
    """The verification / reset email could not be handed to the transport."""
