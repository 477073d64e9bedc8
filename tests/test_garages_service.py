from __future__ import annotations

import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from garage_console.accounts.garages import GarageService
from garage_console.accounts.identity import Identity
from garage_console.accounts.repository import (
    SqlAlchemyGarageRepository,
    default_garage_sidebar,
)
from garage_console.accounts.schemas import GarageDetails
from garage_console.errors import (
    Conflict,
    GarageOperationError,
    MissingRequiredField,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
)
from garage_console.models import (
    Garage,
    Invitation,
    Notification,
    Plan,
    Role,
    SidebarOption,
    SubAccount,
    User,
)

OWNER = Identity(id="user_owner", email="owner@g1.example", name="Olivia")


@pytest.fixture
def owner(session_factory):
    with session_factory.begin() as session:
        session.add(
            User(id=OWNER.id, email=OWNER.email, name=OWNER.name, role=Role.GARAGE_OWNER.value)
        )


@pytest.fixture
def garage(session_factory, owner):
    with session_factory() as session:
        return GarageService(SqlAlchemyGarageRepository(session)).upsert_garage(
            OWNER, GarageDetails(id="G1", name="Main Street Garage", company_email=OWNER.email)
        )


def _count(session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return session.execute(stmt).scalar_one()


def _service(session) -> GarageService:
    return GarageService(SqlAlchemyGarageRepository(session))


def test_default_sidebar_links_point_at_garage():
    entries = default_garage_sidebar("G1")

    assert [entry["name"] for entry in entries] == [
        "Dashboard",
        "Launchpad",
        "Billing",
        "Settings",
        "Sub Accounts",
        "Team",
    ]
    assert entries[0]["link"] == "/garage/G1"
    assert entries[-1] == {"name": "Team", "icon": "shield", "link": "/garage/G1/team"}


def test_upsert_requires_company_email(session_factory, owner):
    with session_factory() as session:
        with pytest.raises(MissingRequiredField) as excinfo:
            _service(session).upsert_garage(OWNER, GarageDetails(id="G1", name="Main Street"))

    assert excinfo.value.field == "company_email"
    with session_factory() as session:
        assert _count(session, Garage) == 0


def test_upsert_requires_identity(session_factory):
    details = GarageDetails(id="G1", name="Main Street", company_email="hq@g1.example")

    with session_factory() as session:
        with pytest.raises(NotAuthenticated):
            _service(session).upsert_garage(None, details)


def test_upsert_creates_garage_with_sidebar_and_links_owner(session_factory, garage):
    assert garage.id == "G1"
    assert garage.goal == 5

    with session_factory() as session:
        assert _count(session, SidebarOption, SidebarOption.garage_id == "G1") == 6
        assert session.get(User, OWNER.id).garage_id == "G1"


def test_upsert_twice_updates_fields_and_keeps_sidebar(session_factory, garage):
    details = GarageDetails(
        id="G1", name="Main Street Motors", company_email=OWNER.email, city="Springfield"
    )

    with session_factory() as session:
        updated = _service(session).upsert_garage(OWNER, details, Plan.UNLIMITED)

    assert updated.name == "Main Street Motors"
    assert updated.city == "Springfield"
    assert updated.plan == "unlimited"
    with session_factory() as session:
        assert _count(session, Garage) == 1
        assert _count(session, SidebarOption, SidebarOption.garage_id == "G1") == 6


def test_upsert_generates_id_when_missing(session_factory, owner):
    details = GarageDetails(name="Fresh Garage", company_email=OWNER.email)

    with session_factory() as session:
        created = _service(session).upsert_garage(OWNER, details)

    assert created.id
    with session_factory() as session:
        assert session.get(User, OWNER.id).garage_id == created.id


def test_upsert_without_registered_owner_fails(session_factory, caplog):
    details = GarageDetails(id="G1", name="Main Street", company_email=OWNER.email)
    caplog.set_level(logging.ERROR, logger="garage_console.accounts.garages")

    with session_factory() as session:
        with pytest.raises(GarageOperationError, match="Could not create garage"):
            _service(session).upsert_garage(OWNER, details)

    assert any("Error upserting garage G1" in r.message for r in caplog.records)
    with session_factory() as session:
        assert _count(session, Garage) == 0


def test_delete_garage_cascades(session_factory, garage):
    with session_factory.begin() as session:
        session.add(SubAccount(id="S1", garage_id="G1", name="Downtown", company_email="dt@g1.example"))
        session.flush()
        session.add(SidebarOption(name="Launchpad", link="/subaccount/S1", sub_account_id="S1"))
        session.add(Invitation(email="bob@g1.example", garage_id="G1"))

    with session_factory() as session:
        _service(session).delete_garage("G1")

    with session_factory() as session:
        assert session.get(Garage, "G1") is None
        assert _count(session, SubAccount, SubAccount.garage_id == "G1") == 0
        assert _count(session, SidebarOption) == 0
        assert _count(session, Invitation) == 0
        assert session.get(User, OWNER.id).garage_id is None


def test_delete_missing_garage_raises_not_found(session_factory):
    with session_factory() as session:
        with pytest.raises(NotFound):
            _service(session).delete_garage("missing")


def test_update_goal_records_activity(session_factory, garage):
    with session_factory() as session:
        updated = _service(session).update_garage_goal(OWNER, "G1", 10)

    assert updated.goal == 10
    with session_factory() as session:
        messages = session.execute(select(Notification.message)).scalars().all()
        assert messages == ["Olivia | Updated the garage goal to | 10 Sub Account"]


def test_update_goal_succeeds_when_activity_log_fails(session_factory, garage, monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="garage_console.accounts.garages")

    def _boom(self, **_kwargs):
        raise StoreUnavailable("notifications offline")

    monkeypatch.setattr(SqlAlchemyGarageRepository, "create_notification", _boom)

    with session_factory() as session:
        updated = _service(session).update_garage_goal(OWNER, "G1", 7)

    assert updated.goal == 7
    assert updated.name == "Main Street Garage"
    assert updated.updated_at is not None
    assert any("Could not record activity" in r.message for r in caplog.records)
    with session_factory() as session:
        assert session.get(Garage, "G1").goal == 7
        assert _count(session, Notification) == 0


def test_update_goal_survives_activity_commit_failure(session_factory, garage, monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="garage_console.accounts.garages")
    original_commit = SqlAlchemyGarageRepository.commit
    calls = []

    def _flaky_commit(self):
        calls.append(1)
        if len(calls) > 1:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        original_commit(self)

    monkeypatch.setattr(SqlAlchemyGarageRepository, "commit", _flaky_commit)

    with session_factory() as session:
        updated = _service(session).update_garage_goal(OWNER, "G1", 9)

    assert updated.goal == 9
    assert len(calls) == 2
    assert any("Could not record activity" in r.message for r in caplog.records)
    with session_factory() as session:
        assert session.get(Garage, "G1").goal == 9
        assert _count(session, Notification) == 0


def test_update_goal_without_acting_user_skips_log(session_factory, garage):
    stranger = Identity(id="user_x", email="stranger@x.example", name="Stranger")

    with session_factory() as session:
        updated = _service(session).update_garage_goal(stranger, "G1", 3)

    assert updated.goal == 3
    with session_factory() as session:
        assert _count(session, Notification) == 0


def test_update_goal_rejects_non_positive(session_factory, garage):
    with session_factory() as session:
        with pytest.raises(ValueError):
            _service(session).update_garage_goal(OWNER, "G1", 0)


def test_update_garage_details_rejects_immutable_fields(session_factory, garage):
    with session_factory() as session:
        with pytest.raises(PermissionDenied):
            _service(session).update_garage_details("G1", {"id": "G2"})


def test_update_missing_garage_raises_not_found(session_factory):
    with session_factory() as session:
        with pytest.raises(NotFound):
            _service(session).update_garage_details("missing", {"name": "Nope"})


def test_send_invitation_records_pending_invite(session_factory, garage):
    with session_factory() as session:
        invitation = _service(session).send_invitation(
            OWNER, "G1", "Bob@G1.example", Role.GARAGE_ADMIN
        )

    assert invitation.email == "bob@g1.example"
    assert invitation.role == "GARAGE_ADMIN"
    assert invitation.status == "PENDING"
    with session_factory() as session:
        messages = session.execute(select(Notification.message)).scalars().all()
        assert messages == ["Olivia | Invited bob@g1.example"]


def test_send_invitation_rejects_duplicates(session_factory, garage):
    with session_factory() as session:
        _service(session).send_invitation(OWNER, "G1", "bob@g1.example")

    with session_factory() as session:
        with pytest.raises(Conflict):
            _service(session).send_invitation(OWNER, "G1", "bob@g1.example")
        with pytest.raises(Conflict):
            _service(session).send_invitation(OWNER, "G1", OWNER.email)


def test_send_invitation_rejects_owner_role(session_factory, garage):
    with session_factory() as session:
        with pytest.raises(PermissionDenied):
            _service(session).send_invitation(OWNER, "G1", "bob@g1.example", Role.GARAGE_OWNER)


def test_send_invitation_requires_garage_manager(session_factory, garage):
    member = Identity(id="user_m", email="member@g1.example", name="Member")
    with session_factory.begin() as session:
        session.add(
            User(
                id=member.id,
                email=member.email,
                name=member.name,
                role=Role.SUBACCOUNT_USER.value,
                garage_id="G1",
            )
        )

    with session_factory() as session:
        with pytest.raises(PermissionDenied):
            _service(session).send_invitation(member, "G1", "bob@g1.example")


def test_update_garage_details_rejects_clearing_required_field(session_factory, garage):
    with session_factory() as session:
        with pytest.raises(MissingRequiredField) as excinfo:
            _service(session).update_garage_details("G1", {"company_email": None, "city": "Lyon"})

    assert excinfo.value.field == "company_email"
    with session_factory() as session:
        stored = session.get(Garage, "G1")
        assert stored.company_email == OWNER.email
        assert stored.city != "Lyon"


def test_update_garage_details_allows_clearing_optional_field(session_factory, garage):
    with session_factory() as session:
        updated = _service(session).update_garage_details("G1", {"connect_account_id": None})

    assert updated.connect_account_id is None
