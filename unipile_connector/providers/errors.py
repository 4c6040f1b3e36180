"""Provider error taxonomy.

Error classes for the account provider layer. Adapters translate HTTP
status codes and transport failures into these, so the connection engine
never inspects status codes itself.

WHY SEPARATE ERROR CLASSES:
- The engine branches on a handful of outcomes (not found, bad code)
- Everything else collapses into a generic upstream failure
- Status code and body stay attached for diagnostics
"""


__all__ = [
    "ProviderError",
    "TransientError",
    "ProviderTimeoutError",
    "AccountNotFoundError",
    "InvalidOrExpiredCheckpointError",
]


class ProviderError(Exception):
    """Base class for all provider errors.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
        body: Raw response body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        """Initialize ProviderError.

        Args:
            message: Error description.
            status_code: HTTP status returned by the provider.
            body: Raw response body for diagnostics.
        """
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransientError(ProviderError):
    """Temporary failure (network, timeout).

    The engine does not retry; callers may, since every engine operation
    is idempotent.
    """

    pass


class AccountNotFoundError(ProviderError):
    """The provider has no account with the requested id (404).

    Disconnect treats this as success: the remote side is already gone.
    """

    pass


class InvalidOrExpiredCheckpointError(ProviderError):
    """Checkpoint code rejected, or the checkpoint expired upstream.

    Raised for 401 responses and for bodies whose type is
    ``errors/authentication_intent_error``.
    """

    pass


class ProviderTimeoutError(TransientError):
    """The request timed out before the provider answered.

    For a long poll this means the account did not change state in time.
    """

    pass
