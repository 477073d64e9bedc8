"""Utility CLI to bootstrap a demo garage, its owner and a pending invitation."""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from garage_console.accounts.garages import GarageService
from garage_console.accounts.identity import Identity, NullIdentityProvider
from garage_console.accounts.provisioning import ProvisioningService
from garage_console.accounts.repository import SqlAlchemyGarageRepository
from garage_console.accounts.schemas import GarageDetails
from garage_console.models import Garage, Invitation, Role, User
from garage_console.models.session import get_engine, init_schema, session_scope
from garage_console.security import issue_identity_token

logger = logging.getLogger("tools.bootstrap_demo")

DEFAULT_GARAGE_ID = "demo-garage"
DEFAULT_GARAGE_NAME = "Demo Garage"
DEFAULT_OWNER_ID = "demo-owner"
DEFAULT_OWNER_NAME = "Demo Owner"
DEFAULT_OWNER_EMAIL = "owner@example.com"
DEFAULT_INVITEE_EMAIL = "mechanic@example.com"


def ensure_demo_entities(
    session: Session,
    *,
    garage_id: str = DEFAULT_GARAGE_ID,
    garage_name: str = DEFAULT_GARAGE_NAME,
    owner: Identity | None = None,
    invitee_email: str | None = DEFAULT_INVITEE_EMAIL,
) -> tuple[Garage, User, bool]:
    """Ensure the demo owner, garage and invitation exist.

    Args:
        session: Active SQLAlchemy session.
        garage_id: Identifier of the demo garage.
        garage_name: Name to assign when creating the garage.
        owner: Identity of the garage owner.
        invitee_email: E-mail that receives a pending ``SUBACCOUNT_USER``
            invitation, or ``None`` to skip it.

    Returns:
        Tuple containing the garage, its owner and whether the garage was
        created by this call.
    """

    owner = owner or Identity(
        id=DEFAULT_OWNER_ID, email=DEFAULT_OWNER_EMAIL, name=DEFAULT_OWNER_NAME
    )
    repository = SqlAlchemyGarageRepository(session)
    provisioning = ProvisioningService(repository, NullIdentityProvider())
    garages = GarageService(repository)

    user = repository.find_user_by_email(owner.email)
    if user is None:
        user = provisioning.init_user(owner, Role.GARAGE_OWNER)
        logger.info("Created user %s (id=%s)", user.email, user.id)
    else:
        logger.info("User %s already exists (id=%s)", user.email, user.id)

    garage = repository.get_garage(garage_id)
    created = garage is None
    if garage is None:
        garage = garages.upsert_garage(
            owner,
            GarageDetails(id=garage_id, name=garage_name, company_email=owner.email),
        )
        logger.info("Created garage %s (id=%s)", garage.name, garage.id)
    else:
        logger.info("Garage %s already exists (id=%s)", garage.name, garage.id)

    if invitee_email:
        invitation: Invitation | None = repository.find_invitation_by_email(invitee_email)
        if invitation is None and repository.find_user_by_email(invitee_email) is None:
            garages.send_invitation(owner, garage.id, invitee_email, Role.SUBACCOUNT_USER)
            logger.info("Invited %s to %s", invitee_email, garage.id)
        else:
            logger.info("Invitation for %s already exists", invitee_email)

    return garage, user, created


def main() -> None:
    """Script entrypoint for ensuring the demo garage exists."""

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--database-url", default=None)
    parser.add_argument("--print-token", action="store_true", help="print an owner token")
    args = parser.parse_args()

    init_schema(get_engine(args.database_url))
    with session_scope(args.database_url) as session:
        garage, user, created = ensure_demo_entities(session)

    logger.info("Garage %s (%s)", "created" if created else "existing", garage.id)
    if args.print_token:
        token, expires_at = issue_identity_token(
            Identity(id=user.id, email=user.email, name=user.name)
        )
        print(token)
        logger.info("Token expires at %s", expires_at.isoformat())


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()
