"""Account provider abstraction layer.

Exports:
    Error classes for provider error handling
    Request/result types shared by adapters
    Factory functions for provider instances
"""

from unipile_connector.providers.base import (
    AccountProvider,
    AccountSource,
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
from unipile_connector.providers.factory import (
    close_account_provider,
    get_account_provider,
    reset_providers,
    set_account_provider,
)

__all__ = [
    # Types
    "AccountProvider",
    "AccountSource",
    "Checkpoint",
    "ConnectRequest",
    "ConnectResult",
    "ProviderAccount",
    "SolveCheckpointResult",
    # Errors
    "ProviderError",
    "TransientError",
    "ProviderTimeoutError",
    "AccountNotFoundError",
    "InvalidOrExpiredCheckpointError",
    # Factory
    "get_account_provider",
    "set_account_provider",
    "close_account_provider",
    "reset_providers",
]
