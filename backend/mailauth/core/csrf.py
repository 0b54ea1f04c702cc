"""Anti-forgery (CSRF) protection via double-submit cookie.

A random token is stored in a JS-readable cookie. State-changing requests
must echo it back in a header (or the ``_token`` query parameter). A
cross-site attacker can make the browser send the cookie but cannot read
it, so cannot echo it.
"""

import secrets

from fastapi import Request, Response

from mailauth.core.config import settings
from mailauth.core.errors import CsrfError

_TOKEN_BYTES = 32


def issue_csrf_token(request: Request, response: Response) -> str:
    """Return the caller's CSRF token, setting the cookie if absent.

    Args:
        request: Incoming request (existing cookie is reused).
        response: Response on which the cookie is set.

    Returns:
        The CSRF token the client must echo back.
    """
    token = request.cookies.get(settings.csrf_cookie_name)
    if not token:
        token = secrets.token_urlsafe(_TOKEN_BYTES)
    response.set_cookie(
        key=settings.csrf_cookie_name,
        value=token,
        httponly=False,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        domain=settings.auth_cookie_domain or None,
    )
    return token


async def require_csrf_token(request: Request) -> None:
    """FastAPI dependency rejecting requests without a matching CSRF token.

    Raises:
        CsrfError: If the cookie is missing or the echoed token differs.
    """
    expected = request.cookies.get(settings.csrf_cookie_name)
    presented = request.headers.get(settings.csrf_header_name) or request.query_params.get(
        settings.csrf_param_name
    )
    if not expected or not presented:
        raise CsrfError()
    if not secrets.compare_digest(expected.encode("utf-8"), presented.encode("utf-8")):
        raise CsrfError()
