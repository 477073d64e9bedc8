"""Identity-backed dependencies for FastAPI routers."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Callable

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session, sessionmaker

from garage_console.accounts.identity import (
    Identity,
    IdentityProvider,
    get_identity_provider_client,
)
from garage_console.accounts.repository import SqlAlchemyGarageRepository
from garage_console.core.auth import IdentityTokenPayload, get_identity_claims
from garage_console.errors import PermissionDenied
from garage_console.models import Role, User
from garage_console.models.session import get_sessionmaker


_ROLE_LEVELS = {
    Role.SUBACCOUNT_GUEST.value: 0,
    Role.SUBACCOUNT_USER.value: 1,
    Role.GARAGE_ADMIN.value: 2,
    Role.GARAGE_OWNER.value: 3,
}
_SESSION_FACTORY: sessionmaker[Session] | None = None


def _get_session_factory() -> sessionmaker[Session]:
    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        _SESSION_FACTORY = get_sessionmaker()
    return _SESSION_FACTORY


def get_db_session() -> Iterator[Session]:
    """Yield a SQLAlchemy session for request-scoped dependencies."""

    session = _get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def get_repository(
    session: Session = Depends(get_db_session),
) -> SqlAlchemyGarageRepository:
    return SqlAlchemyGarageRepository(session)


def get_identity_provider() -> IdentityProvider:
    """Return the identity provider client configured for this process."""

    return get_identity_provider_client()


async def get_current_identity(
    claims: IdentityTokenPayload | None = Depends(get_identity_claims),
) -> Identity | None:
    """Resolve the caller's :class:`Identity`, or ``None`` for anonymous requests."""

    if claims is None:
        return None
    return Identity.from_claims(claims)


async def require_identity(
    identity: Identity | None = Depends(get_current_identity),
) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def authorize_garage_role(
    repository: SqlAlchemyGarageRepository,
    identity: Identity,
    garage_id: str,
    min_role: Role,
) -> User:
    """Return the caller's user when it holds at least ``min_role`` in ``garage_id``.

    Raises:
        PermissionDenied: If the caller is not a member of the garage or its
            role ranks below ``min_role``.
    """

    user = repository.find_user_by_email(identity.email.lower())
    if user is None or user.garage_id != garage_id:
        raise PermissionDenied("Not a member of this garage.")
    if _ROLE_LEVELS.get(user.role, -1) < _ROLE_LEVELS[min_role.value]:
        raise PermissionDenied("Insufficient role.")
    return user


def require_garage_role(min_role: Role) -> Callable[..., User]:
    """Create a dependency ensuring the caller holds ``min_role`` in the path's garage."""

    if min_role.value not in _ROLE_LEVELS:
        raise ValueError(f"Unknown role: {min_role}")

    def dependency(
        garage_id: str,
        identity: Identity = Depends(require_identity),
        repository: SqlAlchemyGarageRepository = Depends(get_repository),
    ) -> User:
        return authorize_garage_role(repository, identity, garage_id, min_role)

    return dependency


__all__ = [
    "authorize_garage_role",
    "get_current_identity",
    "get_db_session",
    "get_identity_provider",
    "get_repository",
    "require_garage_role",
    "require_identity",
]
