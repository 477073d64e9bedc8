"""Turn authenticated identities into provisioned garage members.

The entry point is :meth:`ProvisioningService.resolve_garage_for_identity`,
evaluated on every login-triggered check.  When a pending invitation exists
for the identity's e-mail it is consumed in this order:

1. the user row is created with the invitation's garage and role,
2. a ``Joined`` notification is added to the garage activity feed,
3. the role is written to the identity provider's session metadata,
4. the invitation is deleted and the local transaction is committed.

Steps 1, 2 and 4 share one database transaction.  Step 3 talks to a separate
system, so a commit failure after it leaves the remote role set while the
local rows are rolled back and the invitation stays pending.  The next login
repeats the whole sequence and writes the same role again.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum

from ..errors import (
    Conflict,
    GarageConsoleError,
    NotAuthenticated,
    PermissionDenied,
    translate_store_errors,
)
from ..models import Invitation, Role, User
from .activity import save_activity_log
from .identity import Identity, IdentityProvider
from .repository import GarageRepository

logger = logging.getLogger(__name__)


class ProvisioningStatus(str, Enum):
    """How an identity was resolved against the store."""

    PROVISIONED = "provisioned"
    EXISTING_MEMBER = "existing_member"
    NO_MEMBERSHIP = "no_membership"
    OWNER_INVITATION_REJECTED = "owner_invitation_rejected"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class ProvisioningOutcome:
    """Result of resolving an identity; ``garage_id`` is ``None`` when absent."""

    status: ProvisioningStatus
    garage_id: str | None = None
    user: User | None = None

    @property
    def provisioned(self) -> bool:
        return self.status is ProvisioningStatus.PROVISIONED


class ProvisioningService:
    """Coordinates invitation acceptance and user initialisation."""

    def __init__(
        self,
        repository: GarageRepository,
        identity_provider: IdentityProvider,
    ) -> None:
        self._repository = repository
        self._identity_provider = identity_provider

    def resolve_garage_for_identity(self, identity: Identity | None) -> ProvisioningOutcome:
        """Consume a pending invitation or look up the existing membership.

        Store and identity provider failures are logged and reported through
        the outcome status; they never propagate to the caller.

        Raises:
            NotAuthenticated: If ``identity`` is ``None``.
        """

        if identity is None:
            raise NotAuthenticated("Sign in to continue.")

        email = identity.email.lower()
        try:
            with translate_store_errors("look up invitation"):
                invitation = self._repository.find_pending_invitation_by_email(email)
        except GarageConsoleError:
            logger.exception("Failed to look up invitation for %s", email)
            self._repository.rollback()
            return ProvisioningOutcome(ProvisioningStatus.FAILED)

        if invitation is not None:
            return self._accept_invitation(identity, invitation)

        try:
            with translate_store_errors("look up user"):
                user = self._repository.find_user_by_email(email)
        except GarageConsoleError:
            logger.exception("Failed to look up user %s", email)
            self._repository.rollback()
            return ProvisioningOutcome(ProvisioningStatus.FAILED)

        if user is None:
            return ProvisioningOutcome(ProvisioningStatus.NO_MEMBERSHIP)
        return ProvisioningOutcome(
            ProvisioningStatus.EXISTING_MEMBER, garage_id=user.garage_id, user=user
        )

    def _accept_invitation(
        self, identity: Identity, invitation: Invitation
    ) -> ProvisioningOutcome:
        # Owners are only created through the new-garage path.
        if invitation.role == Role.GARAGE_OWNER.value:
            logger.warning(
                "Ignoring owner invitation for %s to garage %s",
                invitation.email,
                invitation.garage_id,
            )
            return ProvisioningOutcome(ProvisioningStatus.OWNER_INVITATION_REJECTED)

        garage_id = invitation.garage_id
        email = identity.email.lower()
        try:
            with translate_store_errors("accept invitation"):
                user = self._repository.create_user(
                    id=identity.id,
                    email=email,
                    name=identity.name,
                    avatar_url=identity.avatar_url,
                    role=invitation.role,
                    garage_id=garage_id,
                )
                save_activity_log(self._repository, identity, "Joined", garage_id=garage_id)

            self._identity_provider.update_session_role(
                identity.id, user.role or Role.SUBACCOUNT_USER.value
            )

            with translate_store_errors("accept invitation"):
                self._repository.delete_invitation(email)
                self._repository.commit()
        except Conflict:
            self._repository.rollback()
            logger.warning("Invitation for %s conflicts with an existing user", email)
            return ProvisioningOutcome(ProvisioningStatus.CONFLICT)
        except GarageConsoleError:
            self._repository.rollback()
            logger.exception("Failed to accept invitation for %s", email)
            return ProvisioningOutcome(ProvisioningStatus.FAILED)

        logger.info("Provisioned %s into garage %s as %s", email, garage_id, user.role)
        return ProvisioningOutcome(
            ProvisioningStatus.PROVISIONED, garage_id=garage_id, user=user
        )

    def init_user(self, identity: Identity | None, role: Role | None = None) -> User:
        """Create or update the user behind ``identity`` and sync its role.

        This is the only path that produces garage owners.  Members already
        attached to a garage cannot change their own role here.
        """

        if identity is None:
            raise NotAuthenticated()

        email = identity.email.lower()
        create = {
            "id": identity.id,
            "name": identity.name,
            "avatar_url": identity.avatar_url,
            "role": (role or Role.SUBACCOUNT_USER).value,
        }
        update = {"role": role.value} if role is not None else {}

        try:
            with translate_store_errors("initialise user"):
                existing = self._repository.find_user_by_email(email)
                if (
                    existing is not None
                    and existing.garage_id is not None
                    and update
                    and existing.role != update["role"]
                ):
                    raise PermissionDenied("Garage members cannot change their own role.")
                user, created = self._repository.upsert_user(
                    email, create=create, update=update
                )
                self._repository.commit()
        except GarageConsoleError:
            self._repository.rollback()
            raise

        self._identity_provider.update_session_role(identity.id, user.role)
        logger.info("%s user %s as %s", "Created" if created else "Updated", email, user.role)
        return user

    def get_auth_user_details(self, identity: Identity | None) -> User | None:
        """Return the user with garage, sidebar and sub-accounts loaded."""

        if identity is None:
            return None
        with translate_store_errors("load user details"):
            return self._repository.get_user_details(identity.email.lower())


__all__ = ["ProvisioningOutcome", "ProvisioningService", "ProvisioningStatus"]
