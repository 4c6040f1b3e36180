"""Unit of Work over the account store.

Wraps a sequence of repository calls (and any provider call made between
them) in one database transaction.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unipile_connector.repositories.account_repository import AccountRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """Runs callbacks inside a single transaction.

    Usage:
        uow = UnitOfWork(async_session_factory)
        account = await uow.do(lambda repo: repo.get_by_user_and_provider(...))

    Args:
        session_factory: Factory producing a fresh AsyncSession per call.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def do(self, fn: Callable[[AccountRepository], Awaitable[T]]) -> T:
        """Run ``fn`` with a repository bound to a new transaction.

        Commits when ``fn`` returns. Rolls back on any exception raised by
        ``fn`` (validation and provider errors included), then re-raises.
        Cancellation also rolls back.

        Args:
            fn: Async callback receiving the bound AccountRepository.

        Returns:
            Whatever ``fn`` returns.
        """
        async with self._session_factory() as session:
            try:
                result = await fn(AccountRepository(session))
                await session.commit()
            except BaseException:
                await session.rollback()
                logger.debug("Unit of work rolled back")
                raise
            return result
