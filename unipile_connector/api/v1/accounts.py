"""Linked accounts API router.

Endpoints for connecting a LinkedIn account through Unipile, answering
checkpoints, waiting for in-app validation and disconnecting.
All endpoints require authentication. The connection engine does the
work; this module only binds requests and shapes responses.
"""

from fastapi import APIRouter, Response, status

from unipile_connector.api.deps import ConnectionService, CurrentUserId
from unipile_connector.core.responses import DataResponse
from unipile_connector.providers.base import ConnectRequest
from unipile_connector.schemas.account import (
    AccountResponse,
    ConnectLinkedInRequest,
    SolveCheckpointRequest,
    WaitForValidationRequest,
)
from unipile_connector.services.account_connection import ConnectionResult

router = APIRouter()

_LINKEDIN = "LINKEDIN"


# =============================================================================
# GET /accounts
# =============================================================================


@router.get("")
async def list_accounts(
    user_id: CurrentUserId,
    service: ConnectionService,
) -> DataResponse[list[AccountResponse]]:
    """List the user's linked accounts, with open checkpoints."""
    results = await service.list_user_accounts(user_id)
    return DataResponse(data=[AccountResponse.from_result(r) for r in results])


# =============================================================================
# POST /accounts/linkedin
# =============================================================================


@router.post("/linkedin", status_code=status.HTTP_201_CREATED)
async def connect_linkedin(
    body: ConnectLinkedInRequest,
    response: Response,
    user_id: CurrentUserId,
    service: ConnectionService,
) -> DataResponse[AccountResponse]:
    """Connect a LinkedIn account with credentials or a session cookie.

    Returns the account as OK, or PENDING with the checkpoint to answer.
    Connecting again while an account exists returns that account with
    200 instead of 201.
    """
    if body.type == "credentials":
        request = ConnectRequest(
            provider=_LINKEDIN,
            username=body.username,
            password=body.password.get_secret_value() if body.password else None,
            user_agent=body.user_agent,
        )
    else:
        request = ConnectRequest(
            provider=_LINKEDIN,
            access_token=(
                body.access_token.get_secret_value() if body.access_token else None
            ),
            user_agent=body.user_agent,
        )
    result = await service.connect_account(user_id, request)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return DataResponse(data=AccountResponse.from_result(result))


# =============================================================================
# POST /accounts/checkpoint
# =============================================================================


@router.post("/checkpoint")
async def solve_checkpoint(
    body: SolveCheckpointRequest,
    user_id: CurrentUserId,
    service: ConnectionService,
) -> DataResponse[AccountResponse]:
    """Answer the open checkpoint of an account (OTP, 2FA, ...)."""
    result = await service.solve_checkpoint(
        user_id, body.account_id, body.code.get_secret_value()
    )
    return DataResponse(data=AccountResponse.from_result(result))


# =============================================================================
# POST /accounts/{account_id}/wait
# =============================================================================


@router.post("/{account_id}/wait")
async def wait_for_validation(
    account_id: str,
    user_id: CurrentUserId,
    service: ConnectionService,
    body: WaitForValidationRequest | None = None,
) -> DataResponse[AccountResponse]:
    """Long poll until the user approves the sign-in in the LinkedIn app.

    Returns 400 ACCOUNT_NOT_VALIDATED when the poll ends without approval;
    the client may call again.
    """
    timeout = body.timeout_seconds if body is not None else None
    account = await service.wait_for_account_validation(user_id, account_id, timeout)
    return DataResponse(data=AccountResponse.from_result(ConnectionResult(account)))


# =============================================================================
# DELETE /accounts/{account_id}
# =============================================================================


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_account(
    account_id: str,
    user_id: CurrentUserId,
    service: ConnectionService,
) -> None:
    """Disconnect an account locally and on Unipile.

    Succeeds when the account is already gone on either side.
    """
    await service.disconnect_account(user_id, account_id)
