"""API error classes.

Every failure that crosses the connection engine boundary is one of these,
so the HTTP layer maps errors to status codes without reading messages.

Error kinds:
- VALIDATION: the caller or request is wrong (not found, bad checkpoint code)
- BUSINESS: a domain rule blocked a well-formed request
- SYSTEM: infrastructure failure (database, Unipile transport)
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification used by the presentation layer."""

    VALIDATION = "VALIDATION"
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, HTTP status and kind.
    Subclasses set default status_code and kind.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        kind: Error classification (validation, business, system).
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        kind: ErrorKind = ErrorKind.SYSTEM,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.kind = kind
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors and malformed input.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
        *,
        code: str = "VALIDATION_ERROR",
        status_code: int = 400,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            kind=ErrorKind.VALIDATION,
            details=details,
        )


class NotFoundError(ValidationError):
    """Resource not found (404).

    Also used when a pending checkpoint has expired or is of another type:
    from the caller's perspective the challenge simply doesn't exist, and
    "exists but not yours / not pending" is never revealed.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, code="NOT_FOUND", status_code=404)


class InvalidCheckpointError(ValidationError):
    """Checkpoint code rejected by the provider, or checkpoint expired (400)."""

    def __init__(self, message: str = "Invalid code or expired checkpoint") -> None:
        super().__init__(message, code="INVALID_OR_EXPIRED_CHECKPOINT")


class AccountNotValidatedError(ValidationError):
    """Long poll returned without any source reaching OK (400).

    The user may approve the sign-in on their device and retry.
    """

    def __init__(self, message: str = "Account validation has not completed") -> None:
        super().__init__(message, code="ACCOUNT_NOT_VALIDATED")


class UnauthorizedError(ValidationError):
    """Authentication required (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="UNAUTHORIZED", status_code=401)


class BusinessRuleError(APIError):
    """Business rule violation (422).

    Use when a request is well-formed but a domain rule blocks it.
    """

    def __init__(self, message: str, code: str = "BUSINESS_RULE_VIOLATION") -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            kind=ErrorKind.BUSINESS,
        )


class UpstreamError(APIError):
    """The Unipile API failed or was unreachable (502).

    The provider's raw message stays in logs; clients get a generic message.
    """

    def __init__(self, message: str = "Account provider request failed") -> None:
        super().__init__(
            code="UPSTREAM_ERROR",
            message=message,
            status_code=502,
            kind=ErrorKind.SYSTEM,
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
            kind=ErrorKind.SYSTEM,
        )
