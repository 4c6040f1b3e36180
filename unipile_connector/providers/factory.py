"""Provider factory functions.

Singleton pattern for the account provider instance.
"""

from unipile_connector.core.config import Settings, settings
from unipile_connector.providers.base import AccountProvider
from unipile_connector.providers.unipile_adapter import UnipileAdapter

_account_provider: AccountProvider | None = None


def get_account_provider(config: Settings | None = None) -> AccountProvider:
    """Get or create the account provider singleton.

    WHY SINGLETON:
    - Reuses HTTP connections (performance)
    - Consistent configuration across app

    Args:
        config: Optional settings. If None, the module-level settings
            loaded from the environment are used.

    Returns:
        AccountProvider instance.
    """
    global _account_provider

    if _account_provider is None:
        if config is None:
            config = settings
        _account_provider = UnipileAdapter(
            base_url=config.unipile_base_url,
            api_key=config.unipile_api_key.get_secret_value(),
            timeout=config.unipile_timeout_seconds,
        )

    return _account_provider


def set_account_provider(provider: AccountProvider) -> None:
    """Install a specific provider instance (tests, alternate backends)."""
    global _account_provider
    _account_provider = provider


async def close_account_provider() -> None:
    """Close and forget the provider singleton (app shutdown)."""
    global _account_provider
    if _account_provider is not None:
        await _account_provider.aclose()
    _account_provider = None


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _account_provider
    _account_provider = None
