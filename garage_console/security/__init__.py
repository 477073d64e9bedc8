"""Security utilities exposed for convenience."""

from .auth import (
    authorize_garage_role,
    get_current_identity,
    get_identity_provider,
    require_garage_role,
    require_identity,
)
from .tokens import (
    IdentityTokenSettings,
    get_token_settings,
    issue_identity_token,
    reset_token_settings_cache,
)

__all__ = [
    "IdentityTokenSettings",
    "authorize_garage_role",
    "get_current_identity",
    "get_identity_provider",
    "get_token_settings",
    "issue_identity_token",
    "require_garage_role",
    "require_identity",
    "reset_token_settings_cache",
]
