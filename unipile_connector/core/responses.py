"""Response envelope models.

Consistent response format for all API endpoints: successes use
{"data": ...}, failures use {"error": {...}}.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources and small collections.

    Usage:
        @router.get("/accounts")
        async def list_accounts(...) -> DataResponse[list[AccountResponse]]:
            accounts = await service.list_user_accounts(user_id)
            return DataResponse(data=[...])
    """

    data: T


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        kind: Error classification (VALIDATION, BUSINESS, SYSTEM).
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    kind: str | None = None
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    error: ErrorDetail
