"""Repository for Account and AccountStatusHistory operations.

Provides database access for the accounts and account_status_histories
tables. The repository is bound to one AsyncSession; it flushes but never
commits, so the Unit of Work controls the transaction boundary.

Row locks (``for_update=True``) are held until that transaction ends.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from unipile_connector.models.account import Account, AccountStatusHistory
from unipile_connector.models.user import User


class AccountRepository:
    """Account store bound to a single session.

    Every lookup excludes soft-deleted rows and is scoped by user_id, so a
    user can only ever reach their own accounts.
    """

    __slots__ = ("_db",)

    def __init__(self, db: AsyncSession) -> None:
        """Initialize with the session of the current unit of work.

        Args:
            db: The async database session.
        """
        self._db = db

    async def lock_user(self, user_id: uuid.UUID) -> User | None:
        """Lock the user row for the rest of the transaction.

        Serialises concurrent connects for one user, so only one of them
        can create the (user, provider) account.

        Args:
            user_id: User's UUID.

        Returns:
            The locked User, or None if the user doesn't exist.
        """
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, account: Account) -> Account:
        """Insert an account together with any history rows attached to it.

        Args:
            account: Unsaved Account; history rows appended to
                ``account.status_histories`` are inserted in the same flush.

        Returns:
            Created Account with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If a live account already exists
                for the same user and provider.
        """
        self._db.add(account)
        await self._db.flush()
        await self._db.refresh(account)
        return account

    async def get_by_user_and_provider(
        self,
        user_id: uuid.UUID,
        provider: str,
        *,
        for_update: bool = False,
    ) -> Account | None:
        """Find the live account a user has on a provider.

        Args:
            user_id: User's UUID.
            provider: Provider name (e.g., "LINKEDIN").
            for_update: Lock the row until the transaction ends.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(
            Account.user_id == user_id,
            Account.provider == provider,
            Account.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user_and_account_id(
        self,
        user_id: uuid.UUID,
        external_account_id: str,
        *,
        for_update: bool = False,
    ) -> Account | None:
        """Find a user's live account by its provider account id.

        Args:
            user_id: User's UUID.
            external_account_id: Provider's account id.
            for_update: Lock the row until the transaction ends.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(
            Account.user_id == user_id,
            Account.external_account_id == external_account_id,
            Account.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._db.execute(stmt)
        return result.scalars().first()

    async def update(self, account: Account) -> Account:
        """Persist changes made to a loaded account.

        Args:
            account: Account already attached to this session.

        Returns:
            The account with server-side fields (updated_at) refreshed.
        """
        await self._db.flush()
        await self._db.refresh(account)
        return account

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
        """Append a checkpoint row to an account's history.

        Args:
            account: Persisted account the checkpoint belongs to.
            checkpoint: Checkpoint type (e.g., "OTP").
            status: Account status at the time of the checkpoint.
            expires_at: When the checkpoint stops being answerable.
            metadata: Serialized provider payload.
            metadata_version: Layout version of ``metadata``.

        Returns:
            The created AccountStatusHistory.
        """
        history = AccountStatusHistory(
            checkpoint=checkpoint,
            checkpoint_metadata=metadata,
            checkpoint_metadata_version=metadata_version,
            checkpoint_expires_at=expires_at,
            status=status,
        )
        account.status_histories.append(history)
        await self._db.flush()
        await self._db.refresh(history)
        return history

    async def delete(self, account: Account, *, now: datetime | None = None) -> None:
        """Soft delete an account and all of its live history rows.

        Args:
            account: Account attached to this session.
            now: Deletion timestamp. Defaults to the current UTC time.
        """
        deleted_at = now or datetime.now(UTC)
        account.deleted_at = deleted_at
        for history in account.status_histories:
            if history.deleted_at is None:
                history.deleted_at = deleted_at
        await self._db.flush()

    async def list_by_user(self, user_id: uuid.UUID) -> list[Account]:
        """List a user's live accounts, oldest first.

        Args:
            user_id: User's UUID.

        Returns:
            List of accounts (empty if none).
        """
        stmt = (
            select(Account)
            .where(
                Account.user_id == user_id,
                Account.deleted_at.is_(None),
            )
            .order_by(Account.created_at)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def get_with_status(
        self,
        user_id: uuid.UUID,
        external_account_id: str,
        checkpoint: str,
        *,
        now: datetime | None = None,
    ) -> tuple[Account, AccountStatusHistory] | None:
        """Find an account with its latest open checkpoint of one type.

        A checkpoint is open when its history row is live and not yet
        expired. Never existed, expired, removed and wrong type all return
        None; callers cannot tell them apart.

        Args:
            user_id: User's UUID.
            external_account_id: Provider's account id.
            checkpoint: Checkpoint type to look for.
            now: Reference time for expiry. Defaults to the current UTC time.

        Returns:
            (account, history) for the most recent open checkpoint, or None.
        """
        reference = now or datetime.now(UTC)
        stmt = (
            select(Account, AccountStatusHistory)
            .join(AccountStatusHistory, AccountStatusHistory.account_id == Account.id)
            .where(
                Account.user_id == user_id,
                Account.external_account_id == external_account_id,
                Account.deleted_at.is_(None),
                AccountStatusHistory.checkpoint == checkpoint,
                AccountStatusHistory.deleted_at.is_(None),
                AccountStatusHistory.checkpoint_expires_at > reference,
            )
            .order_by(AccountStatusHistory.created_at.desc())
            .limit(1)
        )
        result = await self._db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]
