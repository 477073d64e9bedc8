"""Garage-related SQLAlchemy models.

The models defined here represent the core multi-tenant entities used by the
console: garages, their sub-accounts and navigation entries, the users that
belong to them, pending invitations and the append-only activity feed.
"""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import List

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Role(str, Enum):
    """Roles a user can hold inside a garage."""

    GARAGE_OWNER = "GARAGE_OWNER"
    GARAGE_ADMIN = "GARAGE_ADMIN"
    SUBACCOUNT_USER = "SUBACCOUNT_USER"
    SUBACCOUNT_GUEST = "SUBACCOUNT_GUEST"


class InvitationStatus(str, Enum):
    """Lifecycle status values for an invitation."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class Plan(str, Enum):
    """Billing plans a garage can subscribe to."""

    BASIC = "basic"
    UNLIMITED = "unlimited"


class Garage(Base):
    """Represents a tenant garage in the console.

    Attributes:
        id: Primary key; callers may supply their own identifier on creation.
        name: Display name of the garage.
        company_email: Contact address, required for every garage.
        white_label: Whether sub-accounts show the garage logo by default.
        goal: Target number of sub-accounts shown on the dashboard.
        plan: Billing plan selected at checkout, when any.
        users: Members of the garage. Deleting the garage detaches them.
        sub_accounts: Child workspaces, removed together with the garage.
    """

    __tablename__ = "garages"

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    company_email: Mapped[str] = mapped_column(String(length=320), nullable=False)
    company_phone: Mapped[str] = mapped_column(
        String(length=64), nullable=False, default="", server_default=text("''")
    )
    address: Mapped[str] = mapped_column(
        String(length=255), nullable=False, default="", server_default=text("''")
    )
    city: Mapped[str] = mapped_column(
        String(length=128), nullable=False, default="", server_default=text("''")
    )
    zip_code: Mapped[str] = mapped_column(
        String(length=32), nullable=False, default="", server_default=text("''")
    )
    state: Mapped[str] = mapped_column(
        String(length=128), nullable=False, default="", server_default=text("''")
    )
    country: Mapped[str] = mapped_column(
        String(length=128), nullable=False, default="", server_default=text("''")
    )
    white_label: Mapped[bool] = mapped_column(
        Boolean(), nullable=False, default=True, server_default=text("true")
    )
    garage_logo: Mapped[str] = mapped_column(
        Text(), nullable=False, default="", server_default=text("''")
    )
    goal: Mapped[int] = mapped_column(
        Integer(), nullable=False, default=5, server_default=text("5")
    )
    connect_account_id: Mapped[str | None] = mapped_column(
        String(length=255), nullable=True, default=""
    )
    plan: Mapped[str | None] = mapped_column(String(length=32), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    users: Mapped[List["User"]] = relationship(
        back_populates="garage",
        passive_deletes=True,
    )
    sub_accounts: Mapped[List["SubAccount"]] = relationship(
        back_populates="garage",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sidebar_options: Mapped[List["SidebarOption"]] = relationship(
        back_populates="garage",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invitations: Mapped[List["Invitation"]] = relationship(
        back_populates="garage",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    notifications: Mapped[List["Notification"]] = relationship(
        back_populates="garage",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SubAccount(Base):
    """A child workspace that belongs to exactly one garage."""

    __tablename__ = "sub_accounts"
    __table_args__ = (Index("ix_sub_accounts_garage_id", "garage_id"),)

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    garage_id: Mapped[str] = mapped_column(
        String(length=64),
        ForeignKey("garages.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    company_email: Mapped[str] = mapped_column(String(length=320), nullable=False)
    company_phone: Mapped[str] = mapped_column(
        String(length=64), nullable=False, default=""
    )
    address: Mapped[str] = mapped_column(String(length=255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(length=128), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(length=32), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(length=128), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(length=128), nullable=False, default="")
    sub_account_logo: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    goal: Mapped[int] = mapped_column(Integer(), nullable=False, default=5)
    connect_account_id: Mapped[str | None] = mapped_column(
        String(length=255), nullable=True, default=""
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    garage: Mapped[Garage] = relationship(back_populates="sub_accounts")
    sidebar_options: Mapped[List["SidebarOption"]] = relationship(
        back_populates="sub_account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SidebarOption(Base):
    """Navigation entry shown in the dashboard sidebar of a garage or sub-account."""

    __tablename__ = "sidebar_options"
    __table_args__ = (
        Index("ix_sidebar_options_garage_id", "garage_id"),
        Index("ix_sidebar_options_sub_account_id", "sub_account_id"),
    )

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(length=64), nullable=False)
    link: Mapped[str] = mapped_column(String(length=512), nullable=False, default="#")
    icon: Mapped[str] = mapped_column(String(length=64), nullable=False, default="info")
    garage_id: Mapped[str | None] = mapped_column(
        String(length=64),
        ForeignKey("garages.id", ondelete="CASCADE"),
        nullable=True,
    )
    sub_account_id: Mapped[str | None] = mapped_column(
        String(length=64),
        ForeignKey("sub_accounts.id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    garage: Mapped[Garage | None] = relationship(back_populates="sidebar_options")
    sub_account: Mapped[SubAccount | None] = relationship(back_populates="sidebar_options")


class User(Base):
    """Represents a console user.

    Attributes:
        id: Identifier issued by the identity provider.
        email: Unique e-mail address; the join key with the identity provider.
        name: Friendly name shown in the UI and the activity feed.
        avatar_url: Profile picture supplied by the identity provider.
        role: One of :class:`Role`.
        garage_id: Garage the user belongs to, ``None`` until provisioned.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_email_unique", "email", unique=True),
        Index("ix_users_garage_id", "garage_id"),
    )

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(length=320), nullable=False)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    avatar_url: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    role: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default=Role.SUBACCOUNT_USER.value,
        server_default=text("'SUBACCOUNT_USER'"),
    )
    garage_id: Mapped[str | None] = mapped_column(
        String(length=64),
        ForeignKey("garages.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    garage: Mapped[Garage | None] = relationship(back_populates="users")
    notifications: Mapped[List["Notification"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Invitation(Base):
    """Pending offer for an e-mail address to join a garage under a role."""

    __tablename__ = "invitations"
    __table_args__ = (
        Index("ix_invitations_email_unique", "email", unique=True),
        Index("ix_invitations_garage_id", "garage_id"),
    )

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(length=320), nullable=False)
    garage_id: Mapped[str] = mapped_column(
        String(length=64),
        ForeignKey("garages.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default=Role.SUBACCOUNT_USER.value,
    )
    status: Mapped[str] = mapped_column(
        String(length=16),
        nullable=False,
        default=InvitationStatus.PENDING.value,
        server_default=text("'PENDING'"),
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    garage: Mapped[Garage] = relationship(back_populates="invitations")


class Notification(Base):
    """Append-only activity record scoped to a garage and optionally a sub-account."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_garage_id", "garage_id"),
        Index("ix_notifications_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True, default=_new_id)
    message: Mapped[str] = mapped_column(Text(), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(length=64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    garage_id: Mapped[str] = mapped_column(
        String(length=64),
        ForeignKey("garages.id", ondelete="CASCADE"),
        nullable=False,
    )
    sub_account_id: Mapped[str | None] = mapped_column(
        String(length=64),
        ForeignKey("sub_accounts.id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    user: Mapped[User] = relationship(back_populates="notifications")
    garage: Mapped[Garage] = relationship(back_populates="notifications")


__all__ = [
    "Garage",
    "Invitation",
    "InvitationStatus",
    "Notification",
    "Plan",
    "Role",
    "SidebarOption",
    "SubAccount",
    "User",
]
