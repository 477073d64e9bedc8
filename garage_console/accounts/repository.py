"""Database repository for garages, members, invitations and activity."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..errors import NotFound
from ..models import (
    Garage,
    Invitation,
    InvitationStatus,
    Notification,
    SidebarOption,
    SubAccount,
    User,
)

# Business attributes of a garage that may change after creation. ``id`` and
# the owner linkage are deliberately absent.
GARAGE_MUTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "company_email",
        "company_phone",
        "address",
        "city",
        "zip_code",
        "state",
        "country",
        "white_label",
        "garage_logo",
        "goal",
        "connect_account_id",
        "plan",
    }
)

# Mutable fields backed by NOT NULL columns; they can change but not be cleared.
GARAGE_REQUIRED_FIELDS: frozenset[str] = GARAGE_MUTABLE_FIELDS - {"connect_account_id", "plan"}

_DEFAULT_GARAGE_SIDEBAR: tuple[tuple[str, str, str], ...] = (
    ("Dashboard", "category", ""),
    ("Launchpad", "clipboardIcon", "launchpad"),
    ("Billing", "payment", "billing"),
    ("Settings", "settings", "settings"),
    ("Sub Accounts", "person", "all-subaccounts"),
    ("Team", "shield", "team"),
)


def default_garage_sidebar(garage_id: str) -> list[dict[str, str]]:
    """Return the navigation entries seeded for a new garage."""

    entries: list[dict[str, str]] = []
    for name, icon, section in _DEFAULT_GARAGE_SIDEBAR:
        link = f"/garage/{garage_id}" + (f"/{section}" if section else "")
        entries.append({"name": name, "icon": icon, "link": link})
    return entries


class GarageRepository(Protocol):
    """Abstraction over the persistence store used by the console services."""

    def find_user_by_email(self, email: str) -> User | None: ...

    def get_user_details(self, email: str) -> User | None: ...

    def create_user(self, **fields: Any) -> User: ...

    def upsert_user(
        self, email: str, *, create: Mapping[str, Any], update: Mapping[str, Any]
    ) -> tuple[User, bool]: ...

    def find_first_user_for_sub_account(self, sub_account_id: str) -> User | None: ...

    def find_pending_invitation_by_email(self, email: str) -> Invitation | None: ...

    def find_invitation_by_email(self, email: str) -> Invitation | None: ...

    def create_invitation(self, *, email: str, garage_id: str, role: str) -> Invitation: ...

    def delete_invitation(self, email: str) -> None: ...

    def create_notification(
        self,
        *,
        message: str,
        user_id: str,
        garage_id: str,
        sub_account_id: str | None = None,
    ) -> Notification: ...

    def find_sub_account_by_id(self, sub_account_id: str) -> SubAccount | None: ...

    def get_garage(self, garage_id: str) -> Garage | None: ...

    def upsert_garage(
        self,
        garage_id: str,
        attributes: Mapping[str, Any],
        *,
        owner: User | None = None,
        with_sidebar_seed: bool = True,
    ) -> tuple[Garage, bool]: ...

    def delete_garage(self, garage_id: str) -> None: ...

    def update_garage_fields(self, garage_id: str, fields: Mapping[str, Any]) -> Garage: ...

    def detach(self, instance: object) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class SqlAlchemyGarageRepository:
    """SQLAlchemy implementation of :class:`GarageRepository`.

    Writes are flushed immediately so constraint violations surface at the
    call site, but nothing is committed until :meth:`commit` is called.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # Users -------------------------------------------------------------------
    def find_user_by_email(self, email: str) -> User | None:
        return self._session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

    def get_user_details(self, email: str) -> User | None:
        stmt = (
            select(User)
            .where(User.email == email)
            .options(
                selectinload(User.garage).selectinload(Garage.sidebar_options),
                selectinload(User.garage)
                .selectinload(Garage.sub_accounts)
                .selectinload(SubAccount.sidebar_options),
            )
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def create_user(self, **fields: Any) -> User:
        user = User(**fields)
        self._session.add(user)
        self._session.flush()
        return user

    def upsert_user(
        self, email: str, *, create: Mapping[str, Any], update: Mapping[str, Any]
    ) -> tuple[User, bool]:
        user = self.find_user_by_email(email)
        if user is None:
            return self.create_user(email=email, **create), True
        for key, value in update.items():
            setattr(user, key, value)
        self._session.flush()
        return user, False

    def find_first_user_for_sub_account(self, sub_account_id: str) -> User | None:
        stmt = (
            select(User)
            .join(SubAccount, SubAccount.garage_id == User.garage_id)
            .where(SubAccount.id == sub_account_id)
            .order_by(User.created_at)
            .limit(1)
        )
        return self._session.execute(stmt).scalars().first()

    # Invitations -------------------------------------------------------------
    def find_pending_invitation_by_email(self, email: str) -> Invitation | None:
        return self._session.execute(
            select(Invitation).where(
                func.lower(Invitation.email) == email.lower(),
                Invitation.status == InvitationStatus.PENDING.value,
            )
        ).scalar_one_or_none()

    def find_invitation_by_email(self, email: str) -> Invitation | None:
        return self._session.execute(
            select(Invitation).where(func.lower(Invitation.email) == email.lower())
        ).scalar_one_or_none()

    def create_invitation(self, *, email: str, garage_id: str, role: str) -> Invitation:
        invitation = Invitation(email=email, garage_id=garage_id, role=role)
        self._session.add(invitation)
        self._session.flush()
        return invitation

    def delete_invitation(self, email: str) -> None:
        invitation = self.find_invitation_by_email(email)
        if invitation is None:
            raise NotFound(f"No invitation for {email}.")
        self._session.delete(invitation)
        self._session.flush()

    # Activity ----------------------------------------------------------------
    def create_notification(
        self,
        *,
        message: str,
        user_id: str,
        garage_id: str,
        sub_account_id: str | None = None,
    ) -> Notification:
        notification = Notification(
            message=message,
            user_id=user_id,
            garage_id=garage_id,
            sub_account_id=sub_account_id,
        )
        self._session.add(notification)
        self._session.flush()
        return notification

    # Garages -----------------------------------------------------------------
    def find_sub_account_by_id(self, sub_account_id: str) -> SubAccount | None:
        return self._session.get(SubAccount, sub_account_id)

    def get_garage(self, garage_id: str) -> Garage | None:
        return self._session.get(Garage, garage_id)

    def upsert_garage(
        self,
        garage_id: str,
        attributes: Mapping[str, Any],
        *,
        owner: User | None = None,
        with_sidebar_seed: bool = True,
    ) -> tuple[Garage, bool]:
        garage = self.get_garage(garage_id)
        if garage is not None:
            for key, value in attributes.items():
                if key in GARAGE_MUTABLE_FIELDS:
                    setattr(garage, key, value)
            self._session.flush()
            return garage, False

        garage = Garage(id=garage_id, **attributes)
        if with_sidebar_seed:
            garage.sidebar_options = [
                SidebarOption(**entry) for entry in default_garage_sidebar(garage_id)
            ]
        self._session.add(garage)
        self._session.flush()
        if owner is not None:
            owner.garage_id = garage.id
            self._session.flush()
        return garage, True

    def delete_garage(self, garage_id: str) -> None:
        garage = self.get_garage(garage_id)
        if garage is None:
            raise NotFound(f"Garage {garage_id} not found.")
        self._session.delete(garage)
        self._session.flush()
        # Members are detached by the database; drop stale in-memory state.
        self._session.expire_all()

    def update_garage_fields(self, garage_id: str, fields: Mapping[str, Any]) -> Garage:
        garage = self.get_garage(garage_id)
        if garage is None:
            raise NotFound(f"Garage {garage_id} not found.")
        for key, value in fields.items():
            setattr(garage, key, value)
        self._session.flush()
        return garage

    # Transactions ------------------------------------------------------------
    def detach(self, instance: object) -> None:
        """Remove a loaded instance from the session, keeping its current state."""

        self._session.expunge(instance)

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()


__all__ = [
    "GARAGE_MUTABLE_FIELDS",
    "GARAGE_REQUIRED_FIELDS",
    "GarageRepository",
    "SqlAlchemyGarageRepository",
    "default_garage_sidebar",
]
