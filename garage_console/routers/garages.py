"""Garage console API: landing, members and garage lifecycle."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from ..accounts.garages import GarageService
from ..accounts.identity import Identity, IdentityProvider
from ..accounts.landing import decide_landing, sign_in_redirect
from ..accounts.provisioning import ProvisioningService
from ..accounts.repository import SqlAlchemyGarageRepository
from ..accounts.schemas import (
    GarageDetails,
    GaragePayload,
    GarageUpdate,
    GoalUpdate,
    InitUserRequest,
    InvitationPayload,
    InvitationRequest,
    LandingResponse,
    UserDetailsPayload,
    UserPayload,
)
from ..errors import NotAuthenticated
from ..models import Plan, Role, User
from ..rate_limit import landing_rate_limit, limiter
from ..security.auth import (
    authorize_garage_role,
    get_current_identity,
    get_identity_provider,
    get_repository,
    require_garage_role,
    require_identity,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["garages"])

RepositoryDep = Annotated[SqlAlchemyGarageRepository, Depends(get_repository)]
ProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]
OptionalIdentityDep = Annotated[Identity | None, Depends(get_current_identity)]
IdentityDep = Annotated[Identity, Depends(require_identity)]
AdminDep = Annotated[User, Depends(require_garage_role(Role.GARAGE_ADMIN))]
OwnerDep = Annotated[User, Depends(require_garage_role(Role.GARAGE_OWNER))]


@router.get("/garage/landing", response_model=LandingResponse)
@limiter.limit(landing_rate_limit)
def landing(
    request: Request,
    repository: RepositoryDep,
    provider: ProviderDep,
    identity: OptionalIdentityDep,
    plan: str | None = Query(default=None),
    state: str | None = Query(default=None),
    code: str | None = Query(default=None),
) -> LandingResponse:
    """Run the provisioning check and tell the dashboard where to go next."""

    service = ProvisioningService(repository, provider)
    try:
        outcome = service.resolve_garage_for_identity(identity)
    except NotAuthenticated:
        decision = sign_in_redirect()
        return LandingResponse(action=decision.action, location=decision.location)

    user = outcome.user
    if outcome.garage_id:
        user = service.get_auth_user_details(identity)

    decision = decide_landing(
        outcome.garage_id,
        user,
        plan=plan,
        state=state,
        code=code,
        email=identity.email if identity else None,
    )
    return LandingResponse(
        action=decision.action,
        location=decision.location,
        company_email=decision.company_email,
        provisioning_status=outcome.status.value,
        garage_id=outcome.garage_id,
    )


@router.get("/users/me", response_model=UserDetailsPayload)
def get_me(
    repository: RepositoryDep,
    provider: ProviderDep,
    identity: IdentityDep,
) -> UserDetailsPayload:
    """Return the caller together with its garage, sidebar and sub-accounts."""

    user = ProvisioningService(repository, provider).get_auth_user_details(identity)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return UserDetailsPayload.model_validate(user)


@router.post("/users/me", response_model=UserPayload)
def init_me(
    payload: InitUserRequest,
    repository: RepositoryDep,
    provider: ProviderDep,
    identity: IdentityDep,
) -> UserPayload:
    """Create or update the caller's user record and sync its session role."""

    user = ProvisioningService(repository, provider).init_user(identity, payload.role)
    return UserPayload.model_validate(user)


@router.post("/garages", response_model=GaragePayload)
def upsert_garage(
    payload: GarageDetails,
    repository: RepositoryDep,
    identity: IdentityDep,
    plan: Plan | None = Query(default=None),
) -> GaragePayload:
    """Create a garage for the caller, or update one the caller administers."""

    if payload.id and repository.get_garage(payload.id) is not None:
        authorize_garage_role(repository, identity, payload.id, Role.GARAGE_ADMIN)
    garage = GarageService(repository).upsert_garage(identity, payload, plan)
    return GaragePayload.model_validate(garage)


@router.patch("/garages/{garage_id}", response_model=GaragePayload)
def update_garage(
    garage_id: str,
    payload: GarageUpdate,
    repository: RepositoryDep,
    _: AdminDep,
) -> GaragePayload:
    changes = payload.model_dump(exclude_unset=True)
    garage = GarageService(repository).update_garage_details(garage_id, changes)
    return GaragePayload.model_validate(garage)


@router.put("/garages/{garage_id}/goal", response_model=GaragePayload)
def update_goal(
    garage_id: str,
    payload: GoalUpdate,
    repository: RepositoryDep,
    identity: IdentityDep,
    _: AdminDep,
) -> GaragePayload:
    """Set the sub-account goal and record it in the activity feed."""

    garage = GarageService(repository).update_garage_goal(identity, garage_id, payload.goal)
    return GaragePayload.model_validate(garage)


@router.delete("/garages/{garage_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_garage(
    garage_id: str,
    repository: RepositoryDep,
    _: OwnerDep,
) -> Response:
    """Permanently delete a garage and everything that hangs off it."""

    GarageService(repository).delete_garage(garage_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/garages/{garage_id}/invitations",
    response_model=InvitationPayload,
    status_code=status.HTTP_201_CREATED,
)
def invite_member(
    garage_id: str,
    payload: InvitationRequest,
    repository: RepositoryDep,
    identity: IdentityDep,
    _: AdminDep,
) -> InvitationPayload:
    invitation = GarageService(repository).send_invitation(
        identity, garage_id, payload.email, payload.role
    )
    return InvitationPayload.model_validate(invitation)
