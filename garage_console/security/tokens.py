"""Helpers for issuing identity tokens in development and tests.

Production tokens come from the identity provider; this module mints tokens
with the same claims so the console can be exercised without it.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import os
from functools import lru_cache
from typing import Any

import jwt

from garage_console.accounts.identity import Identity


@dataclasses.dataclass(frozen=True)
class IdentityTokenSettings:
    """Runtime configuration shared by token issuing and validation."""

    secret: str
    issuer: str
    audience: str
    algorithm: str = "HS256"
    ttl_seconds: int = 900  # 15 minutes


@lru_cache(maxsize=1)
def get_token_settings() -> IdentityTokenSettings:
    """Load settings from the environment."""

    secret = os.getenv("IDENTITY_TOKEN_SECRET")
    issuer = os.getenv("IDENTITY_TOKEN_ISSUER")
    audience = os.getenv("IDENTITY_TOKEN_AUDIENCE")
    algorithm = os.getenv("IDENTITY_TOKEN_ALGORITHM", "HS256")
    if not secret or not issuer or not audience:
        raise RuntimeError(
            "IDENTITY_TOKEN_SECRET, IDENTITY_TOKEN_ISSUER and IDENTITY_TOKEN_AUDIENCE must be set.",
        )
    ttl = int(os.getenv("IDENTITY_TOKEN_TTL_SECONDS", "900"))
    return IdentityTokenSettings(
        secret=secret,
        issuer=issuer,
        audience=audience,
        algorithm=algorithm,
        ttl_seconds=ttl,
    )


def reset_token_settings_cache() -> None:
    """Clear cached token settings; useful in tests when env vars change."""

    get_token_settings.cache_clear()


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def issue_identity_token(
    identity: Identity,
    *,
    settings: IdentityTokenSettings | None = None,
    email_verified: bool = True,
) -> tuple[str, dt.datetime]:
    """Sign a session token for ``identity`` and return it with its expiry."""

    settings = settings or get_token_settings()
    now = _utcnow()
    expires_at = now + dt.timedelta(seconds=settings.ttl_seconds)
    payload: dict[str, Any] = {
        "sub": identity.id,
        "email": identity.email,
        "email_verified": email_verified,
        "name": identity.name,
        "picture": identity.avatar_url,
        "iss": settings.issuer,
        "aud": settings.audience,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, settings.secret, algorithm=settings.algorithm)
    return str(token), expires_at


__all__ = [
    "IdentityTokenSettings",
    "get_token_settings",
    "issue_identity_token",
    "reset_token_settings_cache",
]
