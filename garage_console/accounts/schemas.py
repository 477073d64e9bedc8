"""Pydantic schemas for the garage console APIs."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..models import Role


class GarageDetails(BaseModel):
    """Attributes submitted by the garage details form."""

    id: str | None = Field(default=None, min_length=1, max_length=64)
    name: str = Field(..., min_length=2, max_length=255)
    company_email: EmailStr | None = None
    company_phone: str = Field(default="", max_length=64)
    white_label: bool = True
    address: str = Field(default="", max_length=255)
    city: str = Field(default="", max_length=128)
    zip_code: str = Field(default="", max_length=32)
    state: str = Field(default="", max_length=128)
    country: str = Field(default="", max_length=128)
    garage_logo: str = ""
    goal: int | None = Field(default=None, ge=1)
    connect_account_id: str | None = Field(default=None, max_length=255)


class GarageUpdate(BaseModel):
    """Partial update of the mutable garage fields."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=2, max_length=255)
    company_email: EmailStr | None = None
    company_phone: str | None = Field(default=None, max_length=64)
    white_label: bool | None = None
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    state: str | None = Field(default=None, max_length=128)
    country: str | None = Field(default=None, max_length=128)
    garage_logo: str | None = None
    connect_account_id: str | None = Field(default=None, max_length=255)


class GoalUpdate(BaseModel):
    goal: int = Field(..., ge=1)


class InvitationRequest(BaseModel):
    email: EmailStr
    role: Role = Role.SUBACCOUNT_USER


class InitUserRequest(BaseModel):
    role: Role | None = None


class SidebarOptionPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    link: str
    icon: str


class SubAccountPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    company_email: str
    sidebar_options: list[SidebarOptionPayload] = Field(default_factory=list)


class GaragePayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    company_email: str
    company_phone: str
    address: str
    city: str
    zip_code: str
    state: str
    country: str
    white_label: bool
    garage_logo: str
    goal: int
    connect_account_id: str | None = None
    plan: str | None = None
    created_at: datetime
    updated_at: datetime


class GarageDetailPayload(GaragePayload):
    sidebar_options: list[SidebarOptionPayload] = Field(default_factory=list)
    sub_accounts: list[SubAccountPayload] = Field(default_factory=list)


class UserPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: EmailStr
    name: str
    avatar_url: str
    role: Role
    garage_id: str | None = None


class UserDetailsPayload(UserPayload):
    garage: GarageDetailPayload | None = None


class InvitationPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: EmailStr
    garage_id: str
    role: Role
    status: str
    created_at: datetime


class LandingResponse(BaseModel):
    """Where the dashboard should send a freshly authenticated visitor."""

    action: Literal["redirect", "unauthorized", "create_garage"]
    location: str | None = None
    company_email: str | None = None
    provisioning_status: str | None = None
    garage_id: str | None = None


__all__ = [
    "GarageDetailPayload",
    "GarageDetails",
    "GaragePayload",
    "GarageUpdate",
    "GoalUpdate",
    "InitUserRequest",
    "InvitationPayload",
    "InvitationRequest",
    "LandingResponse",
    "SidebarOptionPayload",
    "SubAccountPayload",
    "UserDetailsPayload",
    "UserPayload",
]
