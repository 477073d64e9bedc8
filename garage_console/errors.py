"""Exception hierarchy shared by the services and the HTTP layer."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError

__all__ = [
    "Conflict",
    "GarageConsoleError",
    "GarageOperationError",
    "IdentityProviderError",
    "MissingRequiredField",
    "NotAuthenticated",
    "NotFound",
    "PermissionDenied",
    "StoreUnavailable",
    "translate_store_errors",
]

logger = logging.getLogger(__name__)


class GarageConsoleError(Exception):
    """Base class for every failure reported by the console services."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotAuthenticated(GarageConsoleError):
    """Raised when an operation needs an identity and none was supplied."""

    status_code = 401

    def __init__(self, detail: str = "Authentication required.") -> None:
        super().__init__(detail)


class MissingRequiredField(GarageConsoleError):
    """Raised when a mandatory attribute is absent; nothing is persisted."""

    status_code = 400

    def __init__(self, field: str) -> None:
        super().__init__(f"Field '{field}' is required.")
        self.field = field


class NotFound(GarageConsoleError):
    """Raised when a garage, sub-account, user or invitation does not exist."""

    status_code = 404


class Conflict(GarageConsoleError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409


class StoreUnavailable(GarageConsoleError):
    """Raised when the persistence store cannot be reached."""

    status_code = 503


class IdentityProviderError(StoreUnavailable):
    """Raised when the identity provider rejects or fails a metadata update."""


class PermissionDenied(GarageConsoleError):
    """Raised when the caller's role does not allow the requested action."""

    status_code = 403


class GarageOperationError(GarageConsoleError):
    """Coarse failure surfaced to users; the underlying cause is only logged."""

    status_code = 500


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors raised while performing ``action`` as console errors."""

    try:
        yield
    except IntegrityError as exc:
        raise Conflict(f"Could not {action}: conflicting record.") from exc
    except (OperationalError, DBAPIError) as exc:
        logger.error("Store unavailable while trying to %s: %s", action, exc)
        raise StoreUnavailable(f"Could not {action}: store unavailable.") from exc
    except SQLAlchemyError as exc:
        logger.error("Store error while trying to %s: %s", action, exc)
        raise StoreUnavailable(f"Could not {action}.") from exc
