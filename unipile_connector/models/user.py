"""User model - owner of linked accounts.

User management itself lives elsewhere; this table only carries what the
connector needs: identity for foreign keys and the JWT revocation cut-off.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unipile_connector.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from unipile_connector.models.account import Account

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """Local user account.

    Attributes:
        id: UUID primary key.
        email: Unique email address.
        name: Display name.
        token_invalidated_before: JWTs issued before this are rejected.
        created_at: Creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    token_invalidated_before: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    # Accounts are soft deleted by the connection engine, never cascaded here
    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="user",
    )
