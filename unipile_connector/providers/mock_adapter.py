"""Mock account provider for testing.

MockAccountProvider enables engine and API tests without hitting the
Unipile API.
"""

import asyncio
import uuid
from typing import Any

from unipile_connector.providers.base import (
    AccountProvider,
    AccountSource,
    Checkpoint,
    ConnectRequest,
    ConnectResult,
    ProviderAccount,
    SolveCheckpointResult,
)


class MockAccountProvider(AccountProvider):
    """Mock provider for testing.

    WHY MOCK:
    - Unit tests shouldn't hit real APIs (cost, speed, flakiness)
    - Enables deterministic testing
    - Can simulate error conditions

    Each operation returns its configured result, or raises the configured
    exception. Unconfigured operations succeed with a ready account.

    Attributes:
        calls: Record of all method invocations for test assertions.
        connect_result: Result (or exception) for connect().
        solve_result: Result (or exception) for solve_checkpoint().
        account_result: Result (or exception) for get_account().
        delete_error: Exception for delete_account(), None to succeed.
        accounts: Accounts returned by list_accounts().
        list_error: Exception for list_accounts(), None to succeed.
        delay: Seconds each call sleeps first, to widen race windows.
    """

    @property
    def provider_name(self) -> str:
        """Return 'LINKEDIN' so stored accounts match the real adapter."""
        return "LINKEDIN"

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.connect_result: ConnectResult | Exception | None = None
        self.solve_result: SolveCheckpointResult | Exception | None = None
        self.account_result: ProviderAccount | Exception | None = None
        self.delete_error: Exception | None = None
        self.accounts: list[ProviderAccount] = []
        self.list_error: Exception | None = None
        self.delay: float = 0.0

    def call_count(self, method: str) -> int:
        """Count recorded calls of one method."""
        return sum(1 for call in self.calls if call["method"] == method)

    async def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.delay:
            await asyncio.sleep(self.delay)

    @staticmethod
    def _resolve(result: Any) -> Any:
        if isinstance(result, Exception):
            raise result
        return result

    async def connect(self, request: ConnectRequest) -> ConnectResult:
        """Return the configured connect result."""
        await self._record("connect", username=request.username)
        result = self._resolve(self.connect_result)
        if result is None:
            return ConnectResult(account_id=f"mock-{uuid.uuid4().hex[:12]}")
        return result

    async def solve_checkpoint(
        self, account_id: str, code: str
    ) -> SolveCheckpointResult:
        """Return the configured checkpoint answer result."""
        await self._record("solve_checkpoint", account_id=account_id, code=code)
        result = self._resolve(self.solve_result)
        if result is None:
            return SolveCheckpointResult(account_id=account_id)
        return result

    async def get_account(
        self, account_id: str, *, timeout: float | None = None
    ) -> ProviderAccount:
        """Return the configured account, OK by default."""
        await self._record("get_account", account_id=account_id, timeout=timeout)
        result = self._resolve(self.account_result)
        if result is None:
            return ProviderAccount(
                id=account_id,
                type=self.provider_name,
                sources=[AccountSource(id=f"{account_id}_MESSAGING", status="OK")],
            )
        return result

    async def delete_account(self, account_id: str) -> None:
        """Succeed, or raise the configured error."""
        await self._record("delete_account", account_id=account_id)
        if self.delete_error is not None:
            raise self.delete_error

    async def list_accounts(self) -> list[ProviderAccount]:
        """Return the configured account list, or raise the configured error."""
        await self._record("list_accounts")
        if self.list_error is not None:
            raise self.list_error
        return list(self.accounts)


def checkpoint(checkpoint_type: str, source: str | None = "APP") -> Checkpoint:
    """Build a Checkpoint the way Unipile would send it."""
    raw: dict[str, Any] = {"type": checkpoint_type}
    if source is not None:
        raw["source"] = source
    return Checkpoint(type=checkpoint_type, source=source, raw=raw)
