"""Garage membership, provisioning and garage lifecycle services."""

from . import schemas
from .garages import GarageService
from .identity import HttpIdentityProvider, Identity, IdentityProvider, NullIdentityProvider
from .landing import LandingDecision, decide_landing
from .provisioning import ProvisioningOutcome, ProvisioningService, ProvisioningStatus
from .repository import GarageRepository, SqlAlchemyGarageRepository

__all__ = [
    "GarageRepository",
    "GarageService",
    "HttpIdentityProvider",
    "Identity",
    "IdentityProvider",
    "LandingDecision",
    "NullIdentityProvider",
    "ProvisioningOutcome",
    "ProvisioningService",
    "ProvisioningStatus",
    "SqlAlchemyGarageRepository",
    "decide_landing",
    "schemas",
]
