"""SQLAlchemy ORM models for the Unipile connector.

All models are exported from this module for convenient imports:
    from unipile_connector.models import User, Account, AccountStatusHistory

Models are organized by domain:
- user.py: User (owner of linked accounts)
- account.py: Account, AccountStatusHistory, ConnectionStatus, CheckpointType
"""

from unipile_connector.models.account import (
    Account,
    AccountStatusHistory,
    CheckpointType,
    ConnectionStatus,
)
from unipile_connector.models.base import Base, SoftDeleteMixin, TimestampMixin
from unipile_connector.models.user import User

__all__ = [
    "Account",
    "AccountStatusHistory",
    "Base",
    "CheckpointType",
    "ConnectionStatus",
    "SoftDeleteMixin",
    "TimestampMixin",
    "User",
]
