"""Garage lifecycle operations driven by the dashboard forms."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from ..errors import (
    Conflict,
    GarageConsoleError,
    GarageOperationError,
    MissingRequiredField,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    translate_store_errors,
)
from ..models import Garage, Invitation, Plan, Role
from .activity import save_activity_log
from .identity import Identity
from .repository import GARAGE_MUTABLE_FIELDS, GARAGE_REQUIRED_FIELDS, GarageRepository
from .schemas import GarageDetails

logger = logging.getLogger(__name__)

_INVITING_ROLES = {Role.GARAGE_OWNER.value, Role.GARAGE_ADMIN.value}


class GarageService:
    """Creates, edits and deletes garages on behalf of an identity."""

    def __init__(self, repository: GarageRepository) -> None:
        self._repository = repository

    def upsert_garage(
        self,
        identity: Identity | None,
        details: GarageDetails,
        plan: Plan | None = None,
    ) -> Garage:
        """Create the garage described by ``details`` or update its business fields.

        A new garage gets the default sidebar entries and is linked to the
        requesting user in the same transaction.  Existing garages keep their
        id, owner linkage and sidebar.

        Raises:
            MissingRequiredField: If ``company_email`` is blank; nothing is written.
            NotAuthenticated: If ``identity`` is ``None``.
            GarageOperationError: For any store failure; the cause is logged.
        """

        if not details.company_email:
            raise MissingRequiredField("company_email")
        if identity is None:
            raise NotAuthenticated()

        garage_id = details.id or str(uuid.uuid4())
        attributes: dict[str, Any] = details.model_dump(exclude={"id"}, exclude_none=True)
        attributes["connect_account_id"] = details.connect_account_id or ""
        if plan is not None:
            attributes["plan"] = plan.value

        try:
            with translate_store_errors("create garage"):
                owner = None
                if self._repository.get_garage(garage_id) is None:
                    owner = self._repository.find_user_by_email(identity.email.lower())
                    if owner is None:
                        raise NotFound(f"No user registered for {identity.email}.")
                garage, created = self._repository.upsert_garage(
                    garage_id, attributes, owner=owner, with_sidebar_seed=True
                )
                self._repository.commit()
        except GarageConsoleError as exc:
            self._repository.rollback()
            logger.error("Error upserting garage %s: %s", garage_id, exc, exc_info=exc)
            raise GarageOperationError("Could not create garage") from exc

        logger.info("%s garage %s", "Created" if created else "Updated", garage_id)
        return garage

    def delete_garage(self, garage_id: str) -> None:
        """Permanently delete a garage together with its sub-accounts.

        Raises:
            NotFound: If no garage has ``garage_id``.
            GarageOperationError: For any other store failure.
        """

        try:
            with translate_store_errors("delete garage"):
                self._repository.delete_garage(garage_id)
                self._repository.commit()
        except NotFound:
            self._repository.rollback()
            raise
        except GarageConsoleError as exc:
            self._repository.rollback()
            logger.error("Error deleting garage %s: %s", garage_id, exc, exc_info=exc)
            raise GarageOperationError("Could not delete garage") from exc

        logger.info("Deleted garage %s", garage_id)

    def update_garage_details(self, garage_id: str, changes: Mapping[str, Any]) -> Garage:
        """Apply ``changes`` to the mutable fields of a garage."""

        immutable = set(changes) - GARAGE_MUTABLE_FIELDS
        if immutable:
            raise PermissionDenied(
                f"Fields cannot be changed: {', '.join(sorted(immutable))}."
            )
        cleared = sorted(
            key for key, value in changes.items() if key in GARAGE_REQUIRED_FIELDS and value is None
        )
        if cleared:
            raise MissingRequiredField(cleared[0])

        try:
            with translate_store_errors("update garage"):
                garage = self._repository.update_garage_fields(garage_id, changes)
                self._repository.commit()
        except NotFound:
            self._repository.rollback()
            raise
        except GarageConsoleError as exc:
            self._repository.rollback()
            logger.error("Error updating garage %s: %s", garage_id, exc, exc_info=exc)
            raise GarageOperationError("Could not update garage") from exc
        return garage

    def update_garage_field(
        self,
        identity: Identity | None,
        garage_id: str,
        field: str,
        value: Any,
        *,
        description: str | None = None,
    ) -> Garage:
        """Update one field, then record the change in the activity feed.

        The field update is committed first.  Recording the activity is best
        effort: a failure there is logged and the update still succeeds.
        """

        garage = self.update_garage_details(garage_id, {field: value})
        # Keep the committed garage out of the rollback below.
        self._repository.detach(garage)

        message = description or f"Updated the garage {field.replace('_', ' ')} to | {value}"
        try:
            with translate_store_errors("record activity"):
                save_activity_log(self._repository, identity, message, garage_id=garage_id)
                self._repository.commit()
        except (GarageConsoleError, ValueError) as exc:
            self._repository.rollback()
            logger.warning("Could not record activity for garage %s: %s", garage_id, exc)
        return garage

    def update_garage_goal(self, identity: Identity | None, garage_id: str, goal: int) -> Garage:
        """Set the sub-account goal of a garage."""

        if goal < 1:
            raise ValueError("Goal must be at least 1.")
        return self.update_garage_field(
            identity,
            garage_id,
            "goal",
            goal,
            description=f"Updated the garage goal to | {goal} Sub Account",
        )

    def send_invitation(
        self,
        identity: Identity | None,
        garage_id: str,
        email: str,
        role: Role = Role.SUBACCOUNT_USER,
    ) -> Invitation:
        """Invite ``email`` to join a garage under ``role``.

        Raises:
            PermissionDenied: If the caller does not manage the garage or the
                role is :attr:`Role.GARAGE_OWNER`.
            Conflict: If the e-mail already belongs to a user or an invitation.
        """

        if identity is None:
            raise NotAuthenticated()
        role = Role(role)
        if role is Role.GARAGE_OWNER:
            raise PermissionDenied("Garage owners cannot be invited.")

        email = email.lower()
        try:
            with translate_store_errors("send invitation"):
                inviter = self._repository.find_user_by_email(identity.email.lower())
                if (
                    inviter is None
                    or inviter.garage_id != garage_id
                    or inviter.role not in _INVITING_ROLES
                ):
                    raise PermissionDenied("Only garage owners and admins can invite members.")
                if self._repository.find_user_by_email(email) is not None:
                    raise Conflict("User already exists.")
                if self._repository.find_invitation_by_email(email) is not None:
                    raise Conflict("An invitation is already pending for this e-mail.")

                invitation = self._repository.create_invitation(
                    email=email, garage_id=garage_id, role=role.value
                )
                save_activity_log(
                    self._repository, identity, f"Invited {email}", garage_id=garage_id
                )
                self._repository.commit()
        except GarageConsoleError:
            self._repository.rollback()
            raise

        logger.info("Invited %s to garage %s as %s", email, garage_id, role.value)
        return invitation


__all__ = ["GarageService"]
