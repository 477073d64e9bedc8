"""Decide where a visitor lands after the provisioning check."""

from __future__ import annotations

import dataclasses
from typing import Literal
from urllib.parse import urlencode

from ..models import Role, User

SIGN_IN_PATH = "/garage/sign-in"
SUBACCOUNT_PATH = "/subaccount"

LandingAction = Literal["redirect", "unauthorized", "create_garage"]

_SUBACCOUNT_ROLES = {Role.SUBACCOUNT_USER.value, Role.SUBACCOUNT_GUEST.value}
_GARAGE_ROLES = {Role.GARAGE_OWNER.value, Role.GARAGE_ADMIN.value}


@dataclasses.dataclass(frozen=True)
class LandingDecision:
    action: LandingAction
    location: str | None = None
    company_email: str | None = None


def sign_in_redirect() -> LandingDecision:
    return LandingDecision("redirect", SIGN_IN_PATH)


def decide_landing(
    garage_id: str | None,
    user: User | None,
    *,
    plan: str | None = None,
    state: str | None = None,
    code: str | None = None,
    email: str | None = None,
) -> LandingDecision:
    """Map a resolved garage id and the member's role to a landing decision.

    ``state`` comes back from third-party OAuth flows as
    ``<path>__<garage id>`` and sends owners back to that page with ``code``.
    Without a garage id the visitor is offered the create-garage form,
    pre-filled with ``email``.
    """

    if not garage_id:
        return LandingDecision("create_garage", company_email=email)

    role = user.role if user is not None else None
    if role in _SUBACCOUNT_ROLES:
        return LandingDecision("redirect", SUBACCOUNT_PATH)
    if role not in _GARAGE_ROLES:
        return LandingDecision("unauthorized")

    if plan:
        return LandingDecision(
            "redirect", f"/garage/{garage_id}/billing?{urlencode({'plan': plan})}"
        )
    if state:
        state_path, _, state_garage_id = state.partition("__")
        if not state_garage_id:
            return LandingDecision("unauthorized")
        query = urlencode({"code": code or ""})
        return LandingDecision("redirect", f"/garage/{state_garage_id}/{state_path}?{query}")
    return LandingDecision("redirect", f"/garage/{garage_id}")


__all__ = [
    "LandingDecision",
    "SIGN_IN_PATH",
    "SUBACCOUNT_PATH",
    "decide_landing",
    "sign_in_redirect",
]
