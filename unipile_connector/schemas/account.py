"""Account connection request and response schemas.

Request bodies for the /accounts endpoints and the account views returned
in the {"data": ...} envelope. Credentials and codes are SecretStr so they
never appear in reprs or logs.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

from unipile_connector.providers.base import Checkpoint
from unipile_connector.services.account_connection import ConnectionResult

# =============================================================================
# Requests
# =============================================================================


def _secret(value: SecretStr | None) -> str:
    return value.get_secret_value() if value is not None else ""


class ConnectLinkedInRequest(BaseModel):
    """Body for POST /api/v1/accounts/linkedin.

    ``credentials`` needs username and password; ``cookie`` needs the
    li_at access token (plus, ideally, the browser user agent).

    Attributes:
        type: Authentication method.
        username: LinkedIn login (credentials).
        password: LinkedIn password (credentials).
        access_token: LinkedIn session cookie (cookie).
        user_agent: Browser user agent that produced the cookie.
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["credentials", "cookie"]
    username: str | None = Field(default=None, max_length=255)
    password: SecretStr | None = None
    access_token: SecretStr | None = None
    user_agent: str | None = Field(default=None, max_length=512)

    @model_validator(mode="after")
    def check_required_fields(self) -> "ConnectLinkedInRequest":
        """Require the fields the chosen authentication method needs."""
        if self.type == "credentials":
            if not self.username or not _secret(self.password):
                msg = "username and password are required for credentials auth"
                raise ValueError(msg)
        elif not _secret(self.access_token):
            msg = "access_token is required for cookie auth"
            raise ValueError(msg)
        return self


class SolveCheckpointRequest(BaseModel):
    """Body for POST /api/v1/accounts/checkpoint.

    Attributes:
        account_id: Unipile account id returned by connect.
        code: The user's answer to the checkpoint.
    """

    model_config = ConfigDict(extra="forbid")

    account_id: str = Field(min_length=1, max_length=255)
    code: SecretStr

    @field_validator("code")
    @classmethod
    def check_code_not_blank(cls, value: SecretStr) -> SecretStr:
        """Reject empty or whitespace-only codes."""
        if not value.get_secret_value().strip():
            msg = "code must not be empty"
            raise ValueError(msg)
        return value


class WaitForValidationRequest(BaseModel):
    """Body for POST /api/v1/accounts/{account_id}/wait.

    Attributes:
        timeout_seconds: Long poll timeout. Omitted or non-positive uses
            the server default.
    """

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float | None = Field(default=None, le=600)


# =============================================================================
# Responses
# =============================================================================


class CheckpointResponse(BaseModel):
    """Open checkpoint the user must answer.

    Attributes:
        type: Checkpoint type ("2FA", "OTP", "IN_APP_VALIDATION", ...).
        source: Where the challenge is answered (e.g., "APP").
        metadata: Provider payload, verbatim.
    """

    model_config = ConfigDict(extra="forbid")

    type: str
    source: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> "CheckpointResponse":
        """Build from a provider checkpoint."""
        return cls(
            type=checkpoint.type,
            source=checkpoint.source,
            metadata=checkpoint.raw,
        )


class AccountResponse(BaseModel):
    """A linked account.

    Attributes:
        id: Local account UUID.
        account_id: Unipile account id.
        provider: Provider name (e.g., "LINKEDIN").
        status: PENDING or OK.
        checkpoint: Open checkpoint, present only while PENDING.
        created_at: When the account was linked.
        updated_at: Last status change.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    account_id: str
    provider: str
    status: str
    checkpoint: CheckpointResponse | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_result(cls, result: ConnectionResult) -> "AccountResponse":
        """Build from an engine result."""
        account = result.account
        return cls(
            id=str(account.id),
            account_id=account.external_account_id,
            provider=account.provider,
            status=account.current_status,
            checkpoint=(
                CheckpointResponse.from_checkpoint(result.checkpoint)
                if result.checkpoint is not None
                else None
            ),
            created_at=account.created_at,
            updated_at=account.updated_at,
        )
