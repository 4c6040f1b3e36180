"""Shared fixtures for connection engine unit tests.

The engine runs against an in-memory account store instead of PostgreSQL.
Reads hand out copies of committed rows and writes are staged until the
unit of work commits, so rollback behaves like a real transaction.
``for_update`` reads take a per-row asyncio.Lock held until the unit of
work ends, which is enough to reproduce row-lock serialisation.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from unipile_connector.models.account import (
    Account,
    AccountStatusHistory,
    ConnectionStatus,
)
from unipile_connector.providers.mock_adapter import MockAccountProvider
from unipile_connector.services.account_connection import AccountConnectionService

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
ENGINE_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")


def _clone_history(history: AccountStatusHistory) -> AccountStatusHistory:
    return AccountStatusHistory(
        id=history.id,
        account_id=history.account_id,
        checkpoint=history.checkpoint,
        checkpoint_metadata=history.checkpoint_metadata,
        checkpoint_metadata_version=history.checkpoint_metadata_version,
        checkpoint_expires_at=history.checkpoint_expires_at,
        status=history.status,
        created_at=history.created_at,
        deleted_at=history.deleted_at,
    )


def clone_account(account: Account) -> Account:
    """Detached copy of an account and its history rows."""
    copy = Account(
        id=account.id,
        user_id=account.user_id,
        provider=account.provider,
        external_account_id=account.external_account_id,
        current_status=account.current_status,
        created_at=account.created_at,
        updated_at=account.updated_at,
        deleted_at=account.deleted_at,
    )
    copy.status_histories = [_clone_history(h) for h in account.status_histories]
    return copy


class FakeAccountStore:
    """Committed state shared by every unit of work."""

    def __init__(self) -> None:
        self.user_ids: set[uuid.UUID] = set()
        self.rows: dict[uuid.UUID, Account] = {}
        self.commits = 0
        self.rollbacks = 0
        self._locks: dict[tuple[str, Any], asyncio.Lock] = {}

    def lock_for(self, key: tuple[str, Any]) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def live(self) -> list[Account]:
        return [a for a in self.rows.values() if a.deleted_at is None]

    def find(self, external_account_id: str) -> Account | None:
        """Latest committed row (live or deleted) for a provider account id."""
        matches = [
            a for a in self.rows.values() if a.external_account_id == external_account_id
        ]
        return matches[-1] if matches else None

    def seed(
        self,
        user_id: uuid.UUID,
        external_account_id: str,
        *,
        status: ConnectionStatus = ConnectionStatus.PENDING,
        checkpoint: str | None = None,
        expires_at: datetime | None = None,
        provider: str = "LINKEDIN",
    ) -> Account:
        """Insert a committed account, optionally with one checkpoint row."""
        self.user_ids.add(user_id)
        account = Account(
            id=uuid.uuid4(),
            user_id=user_id,
            provider=provider,
            external_account_id=external_account_id,
            current_status=status.value,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
            deleted_at=None,
        )
        account.status_histories = []
        if checkpoint is not None:
            account.status_histories.append(
                AccountStatusHistory(
                    id=uuid.uuid4(),
                    account_id=account.id,
                    checkpoint=checkpoint,
                    checkpoint_metadata=f'{{"type": "{checkpoint}"}}',
                    checkpoint_metadata_version=1,
                    checkpoint_expires_at=expires_at or FIXED_NOW + timedelta(seconds=270),
                    status=ConnectionStatus.PENDING.value,
                    created_at=FIXED_NOW,
                    deleted_at=None,
                )
            )
        self.rows[account.id] = account
        return account


class FakeAccountRepository:
    """AccountRepository stand-in bound to one fake transaction."""

    def __init__(
        self,
        store: FakeAccountStore,
        held: list[asyncio.Lock],
        staged: dict[uuid.UUID, Account],
    ) -> None:
        self._store = store
        self._held = held
        self._staged = staged

    async def _lock(self, key: tuple[str, Any]) -> None:
        lock = self._store.lock_for(key)
        if lock in self._held:
            return
        await lock.acquire()
        self._held.append(lock)

    def _stage(self, account: Account) -> Account:
        self._staged[account.id] = account
        return account

    async def lock_user(self, user_id: uuid.UUID) -> object | None:
        await self._lock(("user", user_id))
        return user_id if user_id in self._store.user_ids else None

    async def create(self, account: Account) -> Account:
        account.id = uuid.uuid4()
        account.created_at = datetime.now(UTC)
        account.updated_at = account.created_at
        account.deleted_at = None
        for history in account.status_histories:
            history.id = uuid.uuid4()
            history.account_id = account.id
            history.created_at = account.created_at
            history.deleted_at = None
        return self._stage(account)

    async def _get(
        self,
        predicate: Callable[[Account], bool],
        for_update: bool,
    ) -> Account | None:
        if for_update:
            candidates = [a for a in self._store.live() if predicate(a)]
            if candidates:
                await self._lock(("account", candidates[0].id))
        for account in self._store.live():
            if predicate(account):
                return self._staged.get(account.id) or clone_account(account)
        return None

    async def get_by_user_and_provider(
        self, user_id: uuid.UUID, provider: str, *, for_update: bool = False
    ) -> Account | None:
        return await self._get(
            lambda a: a.user_id == user_id and a.provider == provider, for_update
        )

    async def get_by_user_and_account_id(
        self, user_id: uuid.UUID, external_account_id: str, *, for_update: bool = False
    ) -> Account | None:
        return await self._get(
            lambda a: a.user_id == user_id
            and a.external_account_id == external_account_id,
            for_update,
        )

    async def update(self, account: Account) -> Account:
        account.updated_at = datetime.now(UTC)
        return self._stage(account)

    async def add_status_history(
        self,
        account: Account,
        checkpoint: str,
        *,
        status: str,
        expires_at: datetime,
        metadata: str | None = None,
        metadata_version: int = 1,
    ) -> AccountStatusHistory:
        history = AccountStatusHistory(
            id=uuid.uuid4(),
            account_id=account.id,
            checkpoint=checkpoint,
            checkpoint_metadata=metadata,
            checkpoint_metadata_version=metadata_version,
            checkpoint_expires_at=expires_at,
            status=status,
            created_at=datetime.now(UTC),
            deleted_at=None,
        )
        account.status_histories.append(history)
        self._stage(account)
        return history

    async def delete(self, account: Account, *, now: datetime | None = None) -> None:
        deleted_at = now or datetime.now(UTC)
        account.deleted_at = deleted_at
        for history in account.status_histories:
            if history.deleted_at is None:
                history.deleted_at = deleted_at
        self._stage(account)

    async def list_by_user(self, user_id: uuid.UUID) -> list[Account]:
        return [
            clone_account(a)
            for a in sorted(self._store.live(), key=lambda a: a.created_at)
            if a.user_id == user_id
        ]

    async def get_with_status(
        self,
        user_id: uuid.UUID,
        external_account_id: str,
        checkpoint: str,
        *,
        now: datetime | None = None,
    ) -> tuple[Account, AccountStatusHistory] | None:
        reference = now or datetime.now(UTC)
        for account in self._store.live():
            if (
                account.user_id != user_id
                or account.external_account_id != external_account_id
            ):
                continue
            copy = clone_account(account)
            open_rows = [
                h
                for h in copy.status_histories
                if h.checkpoint == checkpoint
                and h.deleted_at is None
                and h.checkpoint_expires_at > reference
            ]
            if open_rows:
                return copy, open_rows[-1]
        return None


class FakeUnitOfWork:
    """UnitOfWork stand-in: commit applies staged rows, errors discard them."""

    def __init__(self, store: FakeAccountStore) -> None:
        self.store = store

    async def do(self, fn: Callable[[FakeAccountRepository], Awaitable[Any]]) -> Any:
        held: list[asyncio.Lock] = []
        staged: dict[uuid.UUID, Account] = {}
        try:
            result = await fn(FakeAccountRepository(self.store, held, staged))
            for account_id, account in staged.items():
                self.store.rows[account_id] = clone_account(account)
            self.store.commits += 1
            return result
        except BaseException:
            self.store.rollbacks += 1
            raise
        finally:
            for lock in reversed(held):
                lock.release()


@pytest.fixture
def store() -> FakeAccountStore:
    """Empty in-memory store with the engine test user registered."""
    fake = FakeAccountStore()
    fake.user_ids.add(ENGINE_USER_ID)
    return fake


@pytest.fixture
def provider() -> MockAccountProvider:
    """Mock provider that is not installed in the factory singleton."""
    return MockAccountProvider()


@pytest.fixture
def service(
    store: FakeAccountStore, provider: MockAccountProvider
) -> AccountConnectionService:
    """Connection engine over the fake store with a pinned clock."""
    return AccountConnectionService(
        FakeUnitOfWork(store),  # type: ignore[arg-type]
        provider,
        clock=lambda: FIXED_NOW,
    )
