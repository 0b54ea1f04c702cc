"""API error classes.

Every error carries a machine-readable code, a message and an HTTP status;
the handlers in mailauth.main render them as the {"error": {...}} envelope.
Auth flow outcomes (mailauth.services.auth_errors) build on APIError too.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_KEY").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ForbiddenError(APIError):
    """Not allowed to access resource (403).

    Use when auth is valid but user lacks permission.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class CsrfError(ForbiddenError):
    """Anti-forgery token missing or wrong (403).

    Raised by the CSRF dependency before any auth flow runs.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="CSRF_TOKEN_INVALID",
            message="A valid anti-forgery token is required",
            status_code=403,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
