"""Abstract base class and types for account providers.

AccountProvider is the narrow interface the connection engine uses to
talk to a remote account automation API: connect, answer a checkpoint,
read status (optionally long polled), delete, list.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ConnectRequest:
    """Credentials for a provider connection attempt.

    Either username and password, or an access token (session cookie),
    must be present. Never log instances of this class.

    Attributes:
        provider: Provider name sent upstream (e.g., "LINKEDIN").
        username: Login name for credential auth.
        password: Password for credential auth.
        access_token: Session cookie for cookie auth.
        user_agent: Browser user agent matching the cookie.
    """

    provider: str
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    access_token: str | None = field(default=None, repr=False)
    user_agent: str | None = None

    def to_payload(self) -> dict[str, str]:
        """Build the request body, omitting empty fields."""
        payload = {"provider": self.provider}
        for key in ("username", "password", "access_token", "user_agent"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload


@dataclass
class Checkpoint:
    """Challenge returned by the provider instead of a ready account.

    Attributes:
        type: Checkpoint type ("2FA", "OTP", "IN_APP_VALIDATION", ...).
        source: Where the challenge is answered (e.g., "APP").
        raw: The provider's checkpoint payload, kept verbatim.
    """

    type: str
    source: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "Checkpoint | None":
        """Parse a checkpoint object, returning None when absent or empty."""
        if not isinstance(payload, dict) or not payload.get("type"):
            return None
        return cls(
            type=str(payload["type"]),
            source=payload.get("source"),
            raw=payload,
        )


@dataclass
class ConnectResult:
    """Outcome of a successful connect call.

    Exactly one shape: a ready account (checkpoint is None), or an account
    id plus the checkpoint that must be answered first.

    Attributes:
        account_id: Provider's account id.
        checkpoint: Pending challenge, or None when the account is ready.
        status_code: HTTP status returned by the provider.
        raw_body: Raw response body.
    """

    account_id: str
    checkpoint: Checkpoint | None = None
    status_code: int = 200
    raw_body: str = ""


@dataclass
class SolveCheckpointResult:
    """Outcome of a successful checkpoint answer.

    Attributes:
        account_id: Provider's account id.
        checkpoint: Follow-up challenge, or None when authentication is done.
        status_code: HTTP status returned by the provider.
        raw_body: Raw response body.
    """

    account_id: str
    checkpoint: Checkpoint | None = None
    status_code: int = 200
    raw_body: str = ""


@dataclass
class AccountSource:
    """One messaging source inside a provider account."""

    id: str
    status: str


@dataclass
class ProviderAccount:
    """Account as reported by the provider.

    Attributes:
        id: Provider's account id.
        name: Display name on the provider.
        type: Provider type (e.g., "LINKEDIN").
        sources: Sources with their individual statuses.
        created_at: Provider-side creation time, as sent.
    """

    id: str
    name: str | None = None
    type: str | None = None
    sources: list[AccountSource] = field(default_factory=list)
    created_at: str | None = None

    @property
    def is_ok(self) -> bool:
        """True when any source reports status OK."""
        return any(source.status == "OK" for source in self.sources)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProviderAccount":
        """Build from a provider account object."""
        sources = [
            AccountSource(id=str(s.get("id", "")), status=str(s.get("status", "")))
            for s in payload.get("sources") or []
            if isinstance(s, dict)
        ]
        return cls(
            id=str(payload.get("id", "")),
            name=payload.get("name"),
            type=payload.get("type"),
            sources=sources,
            created_at=payload.get("created_at"),
        )


class AccountProvider(ABC):
    """Abstract interface for remote account providers.

    Implementations translate transport failures and status codes into
    the ProviderError taxonomy and never retry.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider name sent upstream and stored on accounts."""
        ...

    @abstractmethod
    async def connect(self, request: ConnectRequest) -> ConnectResult:
        """Start a connection.

        Args:
            request: Credentials or cookie for the remote account.

        Returns:
            ConnectResult with either a ready account or a checkpoint.

        Raises:
            TransientError: On transport failure.
            ProviderError: On any non-2xx response.
        """
        ...

    @abstractmethod
    async def solve_checkpoint(
        self, account_id: str, code: str
    ) -> SolveCheckpointResult:
        """Answer the pending checkpoint of an account.

        Args:
            account_id: Provider's account id.
            code: The user's answer (OTP, 2FA code, ...).

        Returns:
            SolveCheckpointResult, possibly carrying a follow-up checkpoint.

        Raises:
            InvalidOrExpiredCheckpointError: Code rejected or checkpoint expired.
            ProviderError: On any other failure.
        """
        ...

    @abstractmethod
    async def get_account(
        self, account_id: str, *, timeout: float | None = None
    ) -> ProviderAccount:
        """Fetch account status.

        Args:
            account_id: Provider's account id.
            timeout: When set, the request may be held open upstream this
                long (long poll). None uses the client default.

        Returns:
            ProviderAccount with its sources.

        Raises:
            AccountNotFoundError: Unknown account id.
            ProviderError: On any other failure.
        """
        ...

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        """Delete the remote account.

        Raises:
            AccountNotFoundError: Unknown account id.
            ProviderError: On any other failure.
        """
        ...

    @abstractmethod
    async def list_accounts(self) -> list[ProviderAccount]:
        """List every account visible to the API key."""
        ...

    async def test_connection(self) -> None:
        """Check the provider is reachable and the API key is accepted.

        Raises:
            ProviderError: If listing accounts fails.
        """
        await self.list_accounts()

    async def aclose(self) -> None:
        """Release any held resources (HTTP connection pool)."""
        return None
