"""Response envelope models.

Success bodies are {"data": ...}, failures {"error": {...}}. Auth flow
outcomes use the same two shapes whether they succeed or not.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources.

    All success responses use {"data": ...} envelope.

    Usage:
        @router.post("/register")
        async def register(...) -> DataResponse[MessageData]:
            message = await flow.register(...)
            return DataResponse(data=MessageData(message=message))
    """

    data: T


class MessageData(BaseModel):
    """Payload of auth flow responses that only carry a message.

    Attributes:
        message: Human-readable outcome message.
    """

    message: str


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_KEY").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    All errors use {"error": {...}} envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    error: ErrorDetail
