"""Account models - linked Unipile accounts and their checkpoint history.

An Account ties a local user to one external account on one provider.
At most one live (non-deleted) account exists per (user, provider); the
partial unique index enforces this alongside the connection engine.

AccountStatusHistory rows are append-only. One is written each time the
provider answers with a checkpoint, and all of them are soft deleted
together with their parent.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unipile_connector.models.base import Base, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from unipile_connector.models.user import User

_DEFAULT_UUID = text("gen_random_uuid()")


class ConnectionStatus(str, Enum):
    """Local lifecycle status of a linked account."""

    PENDING = "PENDING"
    OK = "OK"


class CheckpointType(str, Enum):
    """Challenge types Unipile may answer a connection attempt with.

    Unknown values from the provider are stored as plain strings.
    """

    TWO_FA = "2FA"
    OTP = "OTP"
    IN_APP_VALIDATION = "IN_APP_VALIDATION"
    CAPTCHA = "CAPTCHA"
    PHONE_REGISTER = "PHONE_REGISTER"


class Account(Base, TimestampMixin, SoftDeleteMixin):
    """External provider account linked to a user.

    Attributes:
        id: UUID primary key.
        user_id: FK to users table.
        provider: Provider name (e.g., "LINKEDIN").
        external_account_id: Unipile's opaque account id.
        current_status: PENDING while a checkpoint is open, OK once usable.
        created_at: Creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
        deleted_at: Soft delete marker (from SoftDeleteMixin).
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index(
            "uq_accounts_user_provider_live",
            "user_id",
            "provider",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index("ix_accounts_user_external", "user_id", "external_account_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    external_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    current_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ConnectionStatus.PENDING.value,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="accounts")
    status_histories: Mapped[list["AccountStatusHistory"]] = relationship(
        "AccountStatusHistory",
        back_populates="account",
        order_by="AccountStatusHistory.created_at",
        lazy="selectin",
    )

    @property
    def is_ok(self) -> bool:
        """Check if the account finished authentication."""
        return self.current_status == ConnectionStatus.OK.value


class AccountStatusHistory(Base, SoftDeleteMixin):
    """One checkpoint issued by the provider for an account.

    checkpoint_metadata holds the provider payload verbatim as JSON text;
    checkpoint_metadata_version records the layout of that payload.

    Attributes:
        id: UUID primary key.
        account_id: FK to accounts table.
        checkpoint: Checkpoint type (see CheckpointType).
        checkpoint_metadata: Serialized provider payload.
        checkpoint_metadata_version: Schema version of checkpoint_metadata.
        checkpoint_expires_at: After this instant the checkpoint is stale.
        status: Account status when the row was written.
        created_at: Creation timestamp.
        deleted_at: Soft delete marker (from SoftDeleteMixin).
    """

    __tablename__ = "account_status_histories"
    __table_args__ = (
        Index(
            "ix_account_status_histories_lookup",
            "account_id",
            "checkpoint",
            "checkpoint_expires_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    checkpoint: Mapped[str] = mapped_column(String(50), nullable=False)
    checkpoint_metadata: Mapped[str | None] = mapped_column(Text(), nullable=True)
    checkpoint_metadata_version: Mapped[int] = mapped_column(
        Integer(),
        nullable=False,
        default=1,
    )
    checkpoint_expires_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    account: Mapped["Account"] = relationship(
        "Account", back_populates="status_histories"
    )
