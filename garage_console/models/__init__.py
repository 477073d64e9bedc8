"""SQLAlchemy declarative base and garage-facing models.

This package hosts the SQLAlchemy models used across the backend.  It exposes a
single declarative ``Base`` class that other modules can import when creating
tables in Python.  Individual models live in dedicated modules within this
package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export core garage models for convenience so callers can import them via
# ``from garage_console.models import Garage`` instead of touching private modules.
from .garage import (
    Garage,
    Invitation,
    InvitationStatus,
    Notification,
    Plan,
    Role,
    SidebarOption,
    SubAccount,
    User,
)


__all__ = [
    "Base",
    "Garage",
    "Invitation",
    "InvitationStatus",
    "Notification",
    "Plan",
    "Role",
    "SidebarOption",
    "SubAccount",
    "User",
]
