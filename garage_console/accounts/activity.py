"""Activity feed entries recorded for garage and sub-account changes."""

from __future__ import annotations

import logging

from ..errors import NotFound, translate_store_errors
from ..models import Notification
from .identity import Identity
from .repository import GarageRepository

logger = logging.getLogger(__name__)


def save_activity_log(
    repository: GarageRepository,
    identity: Identity | None,
    description: str,
    *,
    garage_id: str | None = None,
    sub_account_id: str | None = None,
) -> Notification | None:
    """Append ``description`` to the activity feed of a garage.

    The acting user is the one matching ``identity``.  Without an identity
    (for example webhooks acting on a sub-account) the first member of the
    garage owning ``sub_account_id`` is used instead.  When the garage id is
    not given it is resolved through the sub-account.

    Returns ``None`` when no acting user can be found.  The notification is
    flushed but not committed; callers own the transaction.

    Raises:
        ValueError: If neither ``garage_id`` nor ``sub_account_id`` is given.
        NotFound: If ``sub_account_id`` does not exist.
    """

    with translate_store_errors("record activity"):
        if identity is not None:
            user = repository.find_user_by_email(identity.email.lower())
        elif sub_account_id:
            user = repository.find_first_user_for_sub_account(sub_account_id)
        else:
            user = None

        if user is None:
            logger.warning("Could not find a user to record activity %r", description)
            return None

        found_garage_id = garage_id
        if not found_garage_id:
            if not sub_account_id:
                raise ValueError("A garage id or a sub account id is required.")
            sub_account = repository.find_sub_account_by_id(sub_account_id)
            if sub_account is None:
                raise NotFound(f"Sub account {sub_account_id} not found.")
            found_garage_id = sub_account.garage_id

        return repository.create_notification(
            message=f"{user.name} | {description}",
            user_id=user.id,
            garage_id=found_garage_id,
            sub_account_id=sub_account_id,
        )


__all__ = ["save_activity_log"]
