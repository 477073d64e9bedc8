from __future__ import annotations

import logging

from sqlalchemy import func, select

from garage_console.accounts.identity import Identity
from garage_console.models import Invitation, SidebarOption
from tools import bootstrap_demo


def test_ensure_demo_entities_creates_records(session_factory, caplog):
    caplog.set_level(logging.INFO, logger="tools.bootstrap_demo")
    owner = Identity(id="demo-1", email="boss@demo.example", name="Boss")

    with session_factory() as session:
        garage, user, created = bootstrap_demo.ensure_demo_entities(
            session,
            garage_id="DEMO",
            garage_name="Demo Motors",
            owner=owner,
            invitee_email="tech@demo.example",
        )

    assert created is True
    assert garage.id == "DEMO"
    assert user.email == "boss@demo.example"
    assert user.role == "GARAGE_OWNER"

    with session_factory() as session:
        invitation = session.execute(select(Invitation)).scalar_one()
        assert invitation.email == "tech@demo.example"
        assert invitation.role == "SUBACCOUNT_USER"
        assert session.execute(select(func.count()).select_from(SidebarOption)).scalar_one() == 6

    messages = [record.message for record in caplog.records if record.name == "tools.bootstrap_demo"]
    assert any("Created user" in message for message in messages)
    assert any("Created garage" in message for message in messages)


def test_ensure_demo_entities_reuses_existing(session_factory, caplog):
    with session_factory() as session:
        garage, user, _ = bootstrap_demo.ensure_demo_entities(session)
        existing_garage_id = garage.id
        existing_user_id = user.id

    caplog.set_level(logging.INFO, logger="tools.bootstrap_demo")
    caplog.clear()

    with session_factory() as session:
        garage2, user2, created = bootstrap_demo.ensure_demo_entities(session)

    assert created is False
    assert garage2.id == existing_garage_id
    assert user2.id == existing_user_id
    with session_factory() as session:
        assert session.execute(select(func.count()).select_from(Invitation)).scalar_one() == 1

    messages = [record.message for record in caplog.records if record.name == "tools.bootstrap_demo"]
    assert any("already exists" in message for message in messages)
