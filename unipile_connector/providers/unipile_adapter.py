"""Unipile account API adapter.

Implements AccountProvider over httpx.AsyncClient against the Unipile
REST API (``/api/v1/accounts``).

Status code mapping:
- 2xx: success
- 401 on checkpoint answer, or an ``errors/authentication_intent_error``
  body: InvalidOrExpiredCheckpointError
- 404 on account read/delete: AccountNotFoundError
- read timeout (the long poll elapsing): ProviderTimeoutError
- connect, write or pool timeout and other transport failures: TransientError
- anything else: ProviderError
"""

import json
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from unipile_connector.providers.base import (
    AccountProvider,
    Checkpoint,
    ConnectRequest,
    ConnectResult,
    ProviderAccount,
    SolveCheckpointResult,
)
from unipile_connector.providers.errors import (
    AccountNotFoundError,
    InvalidOrExpiredCheckpointError,
    ProviderError,
    ProviderTimeoutError,
    TransientError,
)

logger = structlog.get_logger()

_ACCOUNTS_PATH = "/api/v1/accounts"
_CHECKPOINT_PATH = "/api/v1/accounts/checkpoint"
_AUTH_INTENT_ERROR_TYPE = "errors/authentication_intent_error"

# Bodies are kept on errors for diagnostics, truncated in logs
_LOG_BODY_LIMIT = 500


def _parse_body(response: httpx.Response) -> Any:
    """Decode a JSON body, returning None when it is not JSON."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def _account_path(account_id: str) -> str:
    return f"{_ACCOUNTS_PATH}/{quote(account_id, safe='')}"


def _status_error(operation: str, response: httpx.Response) -> ProviderError:
    """Build a generic ProviderError for an unexpected status code."""
    return ProviderError(
        f"Unipile {operation} failed with status {response.status_code}",
        status_code=response.status_code,
        body=response.text,
    )


class UnipileAdapter(AccountProvider):
    """Unipile implementation of AccountProvider.

    One AsyncClient is shared across calls so connections are pooled.
    Requests carry the ``X-API-KEY`` header and ask for JSON.

    Args:
        base_url: Unipile API root (e.g., "https://api.unipile.com").
        api_key: Unipile API key.
        timeout: Default per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    @property
    def provider_name(self) -> str:
        """Return 'LINKEDIN', the only provider this adapter connects."""
        return "LINKEDIN"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "X-API-KEY": api_key,
                "accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request, mapping transport failures to TransientError."""
        kwargs: dict[str, Any] = {}
        if json_body is not None:
            kwargs["json"] = json_body
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.ReadTimeout as e:
            logger.warning(
                "unipile_request_timeout",
                operation=operation,
                timeout=timeout,
            )
            raise ProviderTimeoutError(f"Unipile {operation} timed out") from e
        except httpx.RequestError as e:
            logger.error(
                "unipile_request_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransientError(f"Unipile {operation} request failed: {e}") from e

        logger.info(
            "unipile_response",
            operation=operation,
            status_code=response.status_code,
        )
        if not response.is_success:
            logger.warning(
                "unipile_error_response",
                operation=operation,
                status_code=response.status_code,
                body=response.text[:_LOG_BODY_LIMIT],
            )
        return response

    async def connect(self, request: ConnectRequest) -> ConnectResult:
        """Start a LinkedIn connection with credentials or a cookie.

        Args:
            request: Credentials or cookie; never logged.

        Returns:
            ConnectResult with either a ready account or a checkpoint.

        Raises:
            TransientError: On transport failure.
            ProviderError: On any non-2xx response or malformed body.
        """
        response = await self._request(
            "connect", "POST", _ACCOUNTS_PATH, json_body=request.to_payload()
        )
        if not response.is_success:
            raise _status_error("connect", response)

        body = _parse_body(response)
        if not isinstance(body, dict) or not body.get("account_id"):
            raise ProviderError(
                "Unipile connect returned no account id",
                status_code=response.status_code,
                body=response.text,
            )

        return ConnectResult(
            account_id=str(body["account_id"]),
            checkpoint=Checkpoint.from_payload(body.get("checkpoint")),
            status_code=response.status_code,
            raw_body=response.text,
        )

    async def solve_checkpoint(
        self, account_id: str, code: str
    ) -> SolveCheckpointResult:
        """Answer the pending checkpoint of an account.

        Args:
            account_id: Unipile account id.
            code: The user's answer; never logged.

        Returns:
            SolveCheckpointResult, with a checkpoint when Unipile asks for
            another challenge.

        Raises:
            InvalidOrExpiredCheckpointError: 401, or an authentication
                intent error body.
            TransientError: On transport failure.
            ProviderError: On any other non-2xx response.
        """
        response = await self._request(
            "solve_checkpoint",
            "POST",
            _CHECKPOINT_PATH,
            json_body={
                "provider": self.provider_name,
                "account_id": account_id,
                "code": code,
            },
        )
        body = _parse_body(response)

        if response.is_success:
            payload = body if isinstance(body, dict) else {}
            return SolveCheckpointResult(
                account_id=str(payload.get("account_id") or account_id),
                checkpoint=Checkpoint.from_payload(payload.get("checkpoint")),
                status_code=response.status_code,
                raw_body=response.text,
            )

        if response.status_code == httpx.codes.UNAUTHORIZED or (
            isinstance(body, dict) and body.get("type") == _AUTH_INTENT_ERROR_TYPE
        ):
            raise InvalidOrExpiredCheckpointError(
                "Invalid code or expired checkpoint",
                status_code=response.status_code,
                body=response.text,
            )
        raise _status_error("solve_checkpoint", response)

    async def get_account(
        self, account_id: str, *, timeout: float | None = None
    ) -> ProviderAccount:
        """Fetch an account, optionally as a long poll.

        Args:
            account_id: Unipile account id.
            timeout: Per-request timeout overriding the client default.

        Returns:
            ProviderAccount with its sources.

        Raises:
            AccountNotFoundError: 404.
            ProviderTimeoutError: The read timeout elapsed before Unipile
                answered (the long poll ended).
            TransientError: On any other transport failure, including
                connect and pool timeouts.
            ProviderError: On any other non-2xx response.
        """
        response = await self._request(
            "get_account",
            "GET",
            _account_path(account_id),
            timeout=timeout,
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise AccountNotFoundError(
                f"Unipile account {account_id} not found",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.is_success:
            raise _status_error("get_account", response)

        body = _parse_body(response)
        if not isinstance(body, dict):
            raise ProviderError(
                "Unipile get_account returned a malformed body",
                status_code=response.status_code,
                body=response.text,
            )
        return ProviderAccount.from_payload(body)

    async def delete_account(self, account_id: str) -> None:
        """Delete an account on Unipile.

        Raises:
            AccountNotFoundError: 404.
            TransientError: On transport failure.
            ProviderError: On any other non-2xx response.
        """
        response = await self._request(
            "delete_account", "DELETE", _account_path(account_id)
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise AccountNotFoundError(
                f"Unipile account {account_id} not found",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.is_success:
            raise _status_error("delete_account", response)

    async def list_accounts(self) -> list[ProviderAccount]:
        """List accounts visible to the API key.

        Raises:
            TransientError: On transport failure.
            ProviderError: On any non-2xx response or malformed body.
        """
        response = await self._request("list_accounts", "GET", _ACCOUNTS_PATH)
        if not response.is_success:
            raise _status_error("list_accounts", response)

        body = _parse_body(response)
        if not isinstance(body, dict):
            raise ProviderError(
                "Unipile list_accounts returned a malformed body",
                status_code=response.status_code,
                body=response.text,
            )
        return [
            ProviderAccount.from_payload(item)
            for item in body.get("items") or []
            if isinstance(item, dict)
        ]
