"""Integration tests for the account connection engine.

End-to-end tests of the engine over the real Unit of Work and PostgreSQL
row locks: concurrent connects and checkpoint answers, the in-app
validation long poll, rollback on provider failure, and reconnecting
after a disconnect. The provider is MockAccountProvider.
"""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.conftest import TEST_USER_ID
from unipile_connector.core.errors import InvalidCheckpointError
from unipile_connector.models.account import Account, AccountStatusHistory
from unipile_connector.providers.base import (
    ConnectRequest,
    ConnectResult,
    SolveCheckpointResult,
)
from unipile_connector.providers.errors import InvalidOrExpiredCheckpointError
from unipile_connector.providers.mock_adapter import MockAccountProvider, checkpoint
from unipile_connector.repositories.unit_of_work import UnitOfWork
from unipile_connector.services.account_connection import AccountConnectionService

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_ACCOUNT_ID = "acc_integration"
_CODE = "123456"
_PROVIDER_DELAY = 0.2
_REQUEST = ConnectRequest(provider="LINKEDIN", username="jane", password="pw")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def service(
    session_factory: async_sessionmaker[AsyncSession],
    mock_provider: MockAccountProvider,
) -> AccountConnectionService:
    """Engine over the real Unit of Work and the mock provider."""
    return AccountConnectionService(UnitOfWork(session_factory), mock_provider)


async def _live_accounts(factory: async_sessionmaker[AsyncSession]) -> list[Account]:
    async with factory() as session:
        result = await session.execute(
            select(Account).where(
                Account.user_id == TEST_USER_ID, Account.deleted_at.is_(None)
            )
        )
        return list(result.scalars().all())


async def _history_count(factory: async_sessionmaker[AsyncSession]) -> int:
    async with factory() as session:
        result = await session.execute(
            select(func.count()).select_from(AccountStatusHistory)
        )
        return result.scalar_one()


async def _connect_pending(
    service: AccountConnectionService,
    mock_provider: MockAccountProvider,
    checkpoint_type: str = "OTP",
) -> None:
    mock_provider.connect_result = ConnectResult(
        account_id=_ACCOUNT_ID, checkpoint=checkpoint(checkpoint_type)
    )
    await service.connect_account(TEST_USER_ID, _REQUEST)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("test_user")
class TestConcurrentConnect:
    """Concurrent connects for one user."""

    async def test_one_provider_call_one_account(
        self, service, mock_provider, session_factory
    ):
        """The user row lock lets only one connect reach the provider."""
        mock_provider.delay = _PROVIDER_DELAY
        mock_provider.connect_result = ConnectResult(account_id=_ACCOUNT_ID)

        first, second = await asyncio.gather(
            service.connect_account(TEST_USER_ID, _REQUEST),
            service.connect_account(TEST_USER_ID, _REQUEST),
        )

        assert mock_provider.call_count("connect") == 1
        assert first.account.id == second.account.id
        assert len(await _live_accounts(session_factory)) == 1


@pytest.mark.usefixtures("test_user")
class TestConcurrentSolve:
    """Concurrent checkpoint answers for one account."""

    async def test_one_provider_call_and_account_ok(
        self, service, mock_provider, session_factory
    ):
        """The second answer waits on the row lock and finds the account OK."""
        await _connect_pending(service, mock_provider)
        mock_provider.delay = _PROVIDER_DELAY

        first, second = await asyncio.gather(
            service.solve_checkpoint(TEST_USER_ID, _ACCOUNT_ID, _CODE),
            service.solve_checkpoint(TEST_USER_ID, _ACCOUNT_ID, _CODE),
        )

        assert mock_provider.call_count("solve_checkpoint") == 1
        assert first.account.is_ok
        assert second.account.is_ok
        accounts = await _live_accounts(session_factory)
        assert [a.current_status for a in accounts] == ["OK"]

    async def test_rejected_code_leaves_account_pending(
        self, service, mock_provider, session_factory
    ):
        """A rejected answer rolls back and the account can be retried."""
        await _connect_pending(service, mock_provider)
        mock_provider.solve_result = InvalidOrExpiredCheckpointError(
            "bad code", status_code=401
        )

        with pytest.raises(InvalidCheckpointError):
            await service.solve_checkpoint(TEST_USER_ID, _ACCOUNT_ID, "000000")

        accounts = await _live_accounts(session_factory)
        assert [a.current_status for a in accounts] == ["PENDING"]

        mock_provider.solve_result = None
        result = await service.solve_checkpoint(TEST_USER_ID, _ACCOUNT_ID, _CODE)
        assert result.account.is_ok

    async def test_follow_up_checkpoint_is_stored(
        self, service, mock_provider, session_factory
    ):
        """A follow-up checkpoint adds a history row and stays PENDING."""
        await _connect_pending(service, mock_provider)
        mock_provider.solve_result = SolveCheckpointResult(
            account_id=_ACCOUNT_ID, checkpoint=checkpoint("IN_APP_VALIDATION")
        )

        result = await service.solve_checkpoint(TEST_USER_ID, _ACCOUNT_ID, _CODE)

        assert not result.account.is_ok
        assert result.checkpoint is not None
        assert result.checkpoint.type == "IN_APP_VALIDATION"
        assert await _history_count(session_factory) == 2


@pytest.mark.usefixtures("test_user")
class TestInAppValidation:
    """The long poll for in-app validation."""

    async def test_wait_marks_account_ok(
        self, service, mock_provider, session_factory
    ):
        """An OK remote account is stored as OK."""
        await _connect_pending(service, mock_provider, "IN_APP_VALIDATION")

        account = await service.wait_for_account_validation(
            TEST_USER_ID, _ACCOUNT_ID, 5
        )

        assert account.is_ok
        accounts = await _live_accounts(session_factory)
        assert [a.current_status for a in accounts] == ["OK"]
        get_calls = [c for c in mock_provider.calls if c["method"] == "get_account"]
        assert get_calls[0]["timeout"] == 5


@pytest.mark.usefixtures("test_user")
class TestDisconnect:
    """Disconnecting and connecting again."""

    async def test_reconnect_after_disconnect(
        self, service, mock_provider, session_factory
    ):
        """A soft-deleted account doesn't block a new connect."""
        mock_provider.connect_result = ConnectResult(account_id=_ACCOUNT_ID)
        await service.connect_account(TEST_USER_ID, _REQUEST)

        await service.disconnect_account(TEST_USER_ID, _ACCOUNT_ID)
        assert await _live_accounts(session_factory) == []

        mock_provider.connect_result = ConnectResult(account_id="acc_second")
        result = await service.connect_account(TEST_USER_ID, _REQUEST)

        assert result.account.external_account_id == "acc_second"
        assert mock_provider.call_count("delete_account") == 1
        assert mock_provider.call_count("connect") == 2
