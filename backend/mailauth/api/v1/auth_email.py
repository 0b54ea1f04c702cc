"""Email authentication endpoints.

Registration, email verification, login, forgot-password and
reset-password. Every POST requires the anti-forgery token; the verify
link is a GET because it is clicked from an email.

Protocol outcomes (wrong password, expired link, ...) come back as
HTTP 200 with the error envelope, raised from AuthFlow as AuthFlowError.
Request fields are optional so a missing field is answered with its
specific outcome instead of a generic validation error.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from mailauth.api.deps import Auth, OptionalIdentity
from mailauth.core.auth import (
    clear_auth_cookie,
    create_jwt,
    session_secret,
    set_auth_cookie,
)
from mailauth.core.csrf import issue_csrf_token, require_csrf_token
from mailauth.core.responses import DataResponse, MessageData
from mailauth.services.auth_flow import AuthenticatedIdentity

_PASSWORD_MAX_LENGTH = 1024
_EMAIL_MAX_LENGTH = 320

router = APIRouter()

CsrfProtected = Annotated[None, Depends(require_csrf_token)]


# ===================================================================
# Request / response models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/email/register."""

    model_config = ConfigDict(extra="forbid")

    email: str | None = Field(None, max_length=_EMAIL_MAX_LENGTH)
    password: str | None = Field(None, max_length=_PASSWORD_MAX_LENGTH)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/email/forgot-password."""

    model_config = ConfigDict(extra="forbid")

    email: str | None = Field(None, max_length=_EMAIL_MAX_LENGTH)


class LoginRequest(BaseModel):
    """Request body for POST /auth/email/login."""

    model_config = ConfigDict(extra="forbid")

    email: str | None = Field(None, max_length=_EMAIL_MAX_LENGTH)
    password: str | None = Field(None, max_length=_PASSWORD_MAX_LENGTH)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/email/reset-password/{id}/{token}."""

    model_config = ConfigDict(extra="forbid")

    new: str | None = Field(None, max_length=_PASSWORD_MAX_LENGTH)
    confirm: str | None = Field(None, max_length=_PASSWORD_MAX_LENGTH)


class SessionData(BaseModel):
    """Identity established by login or email verification."""

    id: str
    email: str
    method: str
    message: str


class CheckData(BaseModel):
    """Response payload of GET /auth/email/check."""

    authenticated: bool
    email: str | None = None
    csrf_token: str


def _start_session(response: Response, identity: AuthenticatedIdentity) -> SessionData:
    token = create_jwt(
        user_id=str(identity.record_id),
        email=identity.email,
        method=identity.method,
        secret=session_secret(),
    )
    set_auth_cookie(response, token)
    return SessionData(
        id=str(identity.record_id),
        email=identity.email,
        method=identity.method,
        message=identity.message,
    )


# ===================================================================
# POST /auth/email/register
# ===================================================================


@router.post("/register")
async def register(
    body: RegisterRequest,
    flow: Auth,
    _csrf: CsrfProtected,
) -> DataResponse[MessageData]:
    """Register an address (or resend its verification email)."""
    message = await flow.register(body.email, body.password)
    return DataResponse(data=MessageData(message=message))


# ===================================================================
# POST /auth/email/forgot-password
# ===================================================================


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    flow: Auth,
    _csrf: CsrfProtected,
) -> DataResponse[MessageData]:
    """Email a password-reset link."""
    message = await flow.forgot_password(body.email)
    return DataResponse(data=MessageData(message=message))


# ===================================================================
# GET /auth/email/verify/{id}/{token}
# ===================================================================


@router.get("/verify/{encrypted_id}/{encrypted_token}")
async def verify_email(
    encrypted_id: str,
    encrypted_token: str,
    response: Response,
    flow: Auth,
) -> DataResponse[SessionData]:
    """Confirm an address from the emailed link and sign the caller in."""
    identity = await flow.verify_email(encrypted_id, encrypted_token)
    return DataResponse(data=_start_session(response, identity))


# ===================================================================
# POST /auth/email/login
# ===================================================================


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    flow: Auth,
    _csrf: CsrfProtected,
) -> DataResponse[SessionData]:
    """Check email + password and issue the session cookie."""
    identity = await flow.login(body.email, body.password)
    return DataResponse(data=_start_session(response, identity))


# ===================================================================
# POST /auth/email/reset-password/{id}/{token}
# ===================================================================


@router.post("/reset-password/{encrypted_id}/{encrypted_token}")
async def reset_password(
    encrypted_id: str,
    encrypted_token: str,
    body: ResetPasswordRequest,
    flow: Auth,
    _csrf: CsrfProtected,
) -> DataResponse[MessageData]:
    """Set a new password from the emailed reset link."""
    message = await flow.reset_password(
        encrypted_id,
        encrypted_token,
        body.new,
        body.confirm,
    )
    return DataResponse(data=MessageData(message=message))


# ===================================================================
# POST /auth/email/logout, GET /auth/email/check
# ===================================================================


@router.post("/logout")
async def logout(
    response: Response,
    _csrf: CsrfProtected,
) -> DataResponse[MessageData]:
    """Clear the session cookie."""
    clear_auth_cookie(response)
    return DataResponse(data=MessageData(message="Logged out"))


@router.get("/check")
async def check(
    request: Request,
    response: Response,
    identity: OptionalIdentity,
) -> DataResponse[CheckData]:
    """Report whether the caller is signed in and hand out the CSRF token."""
    csrf_token = issue_csrf_token(request, response)
    return DataResponse(
        data=CheckData(
            authenticated=identity is not None,
            email=identity.email if identity else None,
            csrf_token=csrf_token,
        )
    )
