"""Account connection engine.

Drives a linked account through its lifecycle:

    UNCONNECTED --connect--> PENDING(checkpoint) --solve/wait--> OK
    PENDING | OK --disconnect--> UNCONNECTED

Rules:
1. One live account per (user, provider); connecting again returns it
2. Checkpoint answers are confirmed with the provider before anything is
   persisted; a provider failure rolls the whole unit of work back
3. Solving or waiting on an OK account never calls the provider
4. Disconnect succeeds when either side is already gone
5. Every writer locks the rows it changes, so concurrent calls on one
   account serialise and the later caller sees the earlier result
"""

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from unipile_connector.core.errors import (
    AccountNotValidatedError,
    InvalidCheckpointError,
    NotFoundError,
    UpstreamError,
)
from unipile_connector.models.account import (
    Account,
    AccountStatusHistory,
    CheckpointType,
    ConnectionStatus,
)
from unipile_connector.providers.base import (
    AccountProvider,
    Checkpoint,
    ConnectRequest,
)
from unipile_connector.providers.errors import (
    AccountNotFoundError,
    InvalidOrExpiredCheckpointError,
    ProviderError,
    ProviderTimeoutError,
)
from unipile_connector.repositories.account_repository import AccountRepository
from unipile_connector.repositories.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

# Layout version of AccountStatusHistory.checkpoint_metadata
CHECKPOINT_METADATA_VERSION = 1

DEFAULT_CHECKPOINT_TTL_SECONDS = 270
DEFAULT_LONG_POLL_SECONDS = 300.0


@dataclass
class ConnectionResult:
    """Account plus the checkpoint still blocking it, if any.

    Attributes:
        account: The stored account.
        checkpoint: Open challenge the user must answer, or None.
        created: True when this call created the account.
    """

    account: Account
    checkpoint: Checkpoint | None = None
    created: bool = False


def _serialize_checkpoint(checkpoint: Checkpoint) -> str:
    return json.dumps(checkpoint.raw or {"type": checkpoint.type})


def _deserialize_checkpoint(history: AccountStatusHistory) -> Checkpoint:
    raw: dict = {}
    if history.checkpoint_metadata:
        try:
            loaded = json.loads(history.checkpoint_metadata)
        except json.JSONDecodeError:
            loaded = None
        if isinstance(loaded, dict):
            raw = loaded
    return Checkpoint(type=history.checkpoint, source=raw.get("source"), raw=raw)


class AccountConnectionService:
    """Connection engine for linked provider accounts.

    Args:
        uow: Unit of work over the account store.
        provider: Remote account provider.
        checkpoint_ttl_seconds: Lifetime of a stored checkpoint.
        long_poll_default_seconds: Long poll timeout used when the caller
            gives none (or a non-positive one).
        clock: Returns the current time; tests pin it.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        provider: AccountProvider,
        *,
        checkpoint_ttl_seconds: int = DEFAULT_CHECKPOINT_TTL_SECONDS,
        long_poll_default_seconds: float = DEFAULT_LONG_POLL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow = uow
        self._provider = provider
        self._checkpoint_ttl = timedelta(seconds=checkpoint_ttl_seconds)
        self._long_poll_default = long_poll_default_seconds
        self._clock = clock or (lambda: datetime.now(UTC))

    def _history_row(
        self, checkpoint: Checkpoint, now: datetime
    ) -> AccountStatusHistory:
        return AccountStatusHistory(
            checkpoint=checkpoint.type,
            checkpoint_metadata=_serialize_checkpoint(checkpoint),
            checkpoint_metadata_version=CHECKPOINT_METADATA_VERSION,
            checkpoint_expires_at=now + self._checkpoint_ttl,
            status=ConnectionStatus.PENDING.value,
        )

    def _open_checkpoint(self, account: Account) -> Checkpoint | None:
        """Latest unexpired checkpoint of a PENDING account, if any."""
        if account.is_ok:
            return None
        now = self._clock()
        open_rows = [
            history
            for history in account.status_histories
            if history.deleted_at is None and history.checkpoint_expires_at > now
        ]
        if not open_rows:
            return None
        return _deserialize_checkpoint(open_rows[-1])

    async def connect_account(
        self, user_id: uuid.UUID, request: ConnectRequest
    ) -> ConnectionResult:
        """Link a provider account to a user.

        Runs in one unit of work holding the user's row lock, so concurrent
        connects for one user cannot both create an account.

        Args:
            user_id: Local user's UUID.
            request: Credentials or cookie for the provider.

        Returns:
            ConnectionResult: an OK account, or a PENDING account with the
            checkpoint to answer. An existing live account is returned
            as-is, with created=False, without calling the provider.

        Raises:
            NotFoundError: If the user doesn't exist.
            UpstreamError: If the provider call fails. Nothing is persisted.
        """
        provider_name = self._provider.provider_name

        async def _connect(repo: AccountRepository) -> ConnectionResult:
            if await repo.lock_user(user_id) is None:
                raise NotFoundError("User", str(user_id))

            existing = await repo.get_by_user_and_provider(
                user_id, provider_name, for_update=True
            )
            if existing is not None:
                logger.info(
                    "Account already connected",
                    extra={
                        "user_id": str(user_id),
                        "account_id": existing.external_account_id,
                        "status": existing.current_status,
                    },
                )
                return ConnectionResult(existing, self._open_checkpoint(existing))

            try:
                result = await self._provider.connect(request)
            except ProviderError as e:
                logger.warning(
                    "Provider connect failed",
                    extra={
                        "user_id": str(user_id),
                        "provider": provider_name,
                        "status_code": e.status_code,
                        "error_type": type(e).__name__,
                    },
                )
                raise UpstreamError() from e

            account = Account(
                user_id=user_id,
                provider=provider_name,
                external_account_id=result.account_id,
                current_status=ConnectionStatus.OK.value,
            )
            if result.checkpoint is not None:
                account.current_status = ConnectionStatus.PENDING.value
                account.status_histories.append(
                    self._history_row(result.checkpoint, self._clock())
                )

            account = await repo.create(account)
            logger.info(
                "Account connected",
                extra={
                    "user_id": str(user_id),
                    "account_id": account.external_account_id,
                    "status": account.current_status,
                    "checkpoint": result.checkpoint.type if result.checkpoint else None,
                },
            )
            return ConnectionResult(account, result.checkpoint, created=True)

        return await self._uow.do(_connect)

    async def solve_checkpoint(
        self, user_id: uuid.UUID, account_id: str, code: str
    ) -> ConnectionResult:
        """Answer the open checkpoint of a user's account.

        Holds the account row lock across the provider call, so two
        concurrent answers produce one provider call; the second caller
        finds the account already OK.

        Args:
            user_id: Local user's UUID.
            account_id: Provider's account id.
            code: The user's answer.

        Returns:
            ConnectionResult: the OK account, or the still-PENDING account
            with a follow-up checkpoint.

        Raises:
            NotFoundError: If the user has no such live account.
            InvalidCheckpointError: If the provider rejects the code or the
                checkpoint expired. The account stays PENDING.
            UpstreamError: On any other provider failure.
        """

        async def _solve(repo: AccountRepository) -> ConnectionResult:
            account = await repo.get_by_user_and_account_id(
                user_id, account_id, for_update=True
            )
            if account is None:
                raise NotFoundError("Account", account_id)
            if account.is_ok:
                return ConnectionResult(account)

            try:
                result = await self._provider.solve_checkpoint(account_id, code)
            except InvalidOrExpiredCheckpointError as e:
                logger.info(
                    "Checkpoint code rejected",
                    extra={"user_id": str(user_id), "account_id": account_id},
                )
                raise InvalidCheckpointError() from e
            except ProviderError as e:
                logger.warning(
                    "Provider checkpoint answer failed",
                    extra={
                        "user_id": str(user_id),
                        "account_id": account_id,
                        "status_code": e.status_code,
                        "error_type": type(e).__name__,
                    },
                )
                raise UpstreamError() from e

            if result.checkpoint is not None:
                await repo.add_status_history(
                    account,
                    result.checkpoint.type,
                    status=ConnectionStatus.PENDING.value,
                    expires_at=self._clock() + self._checkpoint_ttl,
                    metadata=_serialize_checkpoint(result.checkpoint),
                    metadata_version=CHECKPOINT_METADATA_VERSION,
                )
                logger.info(
                    "Follow-up checkpoint issued",
                    extra={
                        "user_id": str(user_id),
                        "account_id": account_id,
                        "checkpoint": result.checkpoint.type,
                    },
                )
                return ConnectionResult(account, result.checkpoint)

            account.current_status = ConnectionStatus.OK.value
            account = await repo.update(account)
            logger.info(
                "Checkpoint solved",
                extra={"user_id": str(user_id), "account_id": account_id},
            )
            return ConnectionResult(account)

        return await self._uow.do(_solve)

    async def wait_for_account_validation(
        self,
        user_id: uuid.UUID,
        account_id: str,
        timeout: float | None = None,
    ) -> Account:
        """Wait for the user to approve an in-app validation checkpoint.

        Issues a single long-poll status read; no lock is held while it is
        in flight. Cancelling the caller cancels the read and leaves the
        account untouched.

        Args:
            user_id: Local user's UUID.
            account_id: Provider's account id.
            timeout: Long poll timeout in seconds. None or non-positive
                uses the configured default.

        Returns:
            The account, now OK.

        Raises:
            NotFoundError: If there is no open IN_APP_VALIDATION checkpoint
                for this account, or the provider no longer knows it.
            AccountNotValidatedError: If the poll ended without approval.
            UpstreamError: On any other provider failure.
        """
        found = await self._uow.do(
            lambda repo: repo.get_with_status(
                user_id,
                account_id,
                CheckpointType.IN_APP_VALIDATION.value,
                now=self._clock(),
            )
        )
        if found is None:
            raise NotFoundError("Pending validation", account_id)
        account, _ = found
        if account.is_ok:
            return account

        poll_timeout = timeout if timeout is not None and timeout > 0 else None
        if poll_timeout is None:
            poll_timeout = self._long_poll_default

        try:
            remote = await self._provider.get_account(account_id, timeout=poll_timeout)
        except AccountNotFoundError as e:
            raise NotFoundError("Account", account_id) from e
        except ProviderTimeoutError as e:
            logger.info(
                "Validation long poll timed out",
                extra={"user_id": str(user_id), "account_id": account_id},
            )
            raise AccountNotValidatedError() from e
        except ProviderError as e:
            logger.warning(
                "Provider status read failed",
                extra={
                    "user_id": str(user_id),
                    "account_id": account_id,
                    "status_code": e.status_code,
                    "error_type": type(e).__name__,
                },
            )
            raise UpstreamError() from e

        if not remote.is_ok:
            raise AccountNotValidatedError()

        async def _mark_ok(repo: AccountRepository) -> Account:
            locked = await repo.get_by_user_and_account_id(
                user_id, account_id, for_update=True
            )
            if locked is None:
                raise NotFoundError("Account", account_id)
            if not locked.is_ok:
                locked.current_status = ConnectionStatus.OK.value
                locked = await repo.update(locked)
            return locked

        validated = await self._uow.do(_mark_ok)
        logger.info(
            "Account validated in app",
            extra={"user_id": str(user_id), "account_id": account_id},
        )
        return validated

    async def disconnect_account(self, user_id: uuid.UUID, account_id: str) -> None:
        """Remove a linked account on both sides.

        Args:
            user_id: Local user's UUID.
            account_id: Provider's account id.

        Raises:
            UpstreamError: If the provider delete fails for any reason other
                than the account being gone. Nothing changes locally.
        """

        async def _disconnect(repo: AccountRepository) -> None:
            account = await repo.get_by_user_and_account_id(
                user_id, account_id, for_update=True
            )
            if account is None:
                logger.info(
                    "Account already disconnected",
                    extra={"user_id": str(user_id), "account_id": account_id},
                )
                return

            try:
                await self._provider.delete_account(account_id)
            except AccountNotFoundError:
                logger.info(
                    "Remote account already deleted",
                    extra={"user_id": str(user_id), "account_id": account_id},
                )
            except ProviderError as e:
                logger.warning(
                    "Provider delete failed",
                    extra={
                        "user_id": str(user_id),
                        "account_id": account_id,
                        "status_code": e.status_code,
                        "error_type": type(e).__name__,
                    },
                )
                raise UpstreamError() from e

            await repo.delete(account, now=self._clock())
            logger.info(
                "Account disconnected",
                extra={"user_id": str(user_id), "account_id": account_id},
            )

        await self._uow.do(_disconnect)

    async def list_user_accounts(self, user_id: uuid.UUID) -> list[ConnectionResult]:
        """List a user's live accounts with their open checkpoints.

        Args:
            user_id: Local user's UUID.

        Returns:
            One ConnectionResult per live account, oldest first.
        """
        accounts = await self._uow.do(lambda repo: repo.list_by_user(user_id))
        return [
            ConnectionResult(account, self._open_checkpoint(account))
            for account in accounts
        ]
