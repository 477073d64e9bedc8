"""Utilities for validating identity provider session tokens."""

from __future__ import annotations

import os
from typing import TypedDict, cast

import jwt
from fastapi import HTTPException, Request, status
from jwt import ExpiredSignatureError, InvalidTokenError

__all__ = [
    "IdentityTokenConfigurationError",
    "IdentityTokenPayload",
    "IdentityTokenValidationError",
    "decode_identity_token",
    "extract_bearer_token",
    "get_identity_claims",
]


class IdentityTokenConfigurationError(RuntimeError):
    """Raised when identity token configuration is invalid."""


class IdentityTokenValidationError(ValueError):
    """Raised when the provided identity token cannot be validated."""


class _IdentityTokenRequiredClaims(TypedDict):
    sub: str
    email: str


class IdentityTokenPayload(_IdentityTokenRequiredClaims, total=False):
    """Decoded JWT payload issued by the identity provider."""

    aud: str | list[str]
    email_verified: bool
    exp: int
    family_name: str
    given_name: str
    iat: int
    iss: str
    name: str
    picture: str


def _get_env(name: str, *, required: bool = True, default: str | None = None) -> str:
    """Fetch an environment variable with optional requirement enforcement.

    Args:
        name: Name of the environment variable to read.
        required: Whether to raise when the variable is missing or empty.
        default: Value to use when ``required`` is ``False`` and the variable is
            undefined.

    Returns:
        str: Stripped environment variable value or provided default.

    Raises:
        IdentityTokenConfigurationError: If ``required`` is ``True`` and the
            variable is missing or blank.
    """

    value = os.getenv(name, default)
    if required and (value is None or not value.strip()):
        raise IdentityTokenConfigurationError(
            f"Environment variable '{name}' must be set for identity token validation.",
        )
    if value is None:
        return ""
    return value.strip()


def decode_identity_token(token: str) -> IdentityTokenPayload:
    """Decode and validate an identity provider session token.

    Args:
        token: Encoded JWT token string from the ``Authorization`` header.

    Returns:
        IdentityTokenPayload: Parsed payload with the subject and verified e-mail.

    Raises:
        IdentityTokenConfigurationError: If mandatory environment configuration is missing.
        IdentityTokenValidationError: If token signature, claims, or expiry are invalid,
            or the e-mail address has not been verified by the provider.
    """

    secret_key = _get_env("IDENTITY_TOKEN_SECRET")
    audience = _get_env("IDENTITY_TOKEN_AUDIENCE")
    issuer = _get_env("IDENTITY_TOKEN_ISSUER")
    algorithm = _get_env("IDENTITY_TOKEN_ALGORITHM", required=False, default="HS256")

    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            audience=audience,
            issuer=issuer,
            options={"require": ["exp", "aud", "iss", "sub"]},
        )
    except ExpiredSignatureError as exc:
        raise IdentityTokenValidationError("Identity token has expired.") from exc
    except InvalidTokenError as exc:
        raise IdentityTokenValidationError("Identity token is invalid.") from exc

    if not payload.get("email"):
        raise IdentityTokenValidationError("Identity token payload must include 'email'.")
    if payload.get("email_verified") is False:
        raise IdentityTokenValidationError("Identity token e-mail is not verified.")

    return cast(IdentityTokenPayload, payload)


def extract_bearer_token(request: Request) -> str | None:
    """Return the bearer credentials of ``request`` or ``None`` when absent.

    Raises:
        HTTPException: With status ``401`` when the header uses another scheme.
    """

    authorization = request.headers.get("Authorization")
    if not authorization:
        return None

    scheme, _, credentials = authorization.partition(" ")
    if not credentials or scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must use Bearer scheme.",
        )
    return credentials


async def get_identity_claims(request: Request) -> IdentityTokenPayload | None:
    """Extract identity claims from the ``Authorization`` header.

    Args:
        request: Incoming request whose headers may contain a bearer token.

    Returns:
        The validated payload, or ``None`` when the request carries no token.

    Raises:
        HTTPException: With status ``401`` when the header is malformed or the
            token is invalid, or ``500`` if the token configuration is incorrect.
    """

    credentials = extract_bearer_token(request)
    if credentials is None:
        return None

    try:
        return decode_identity_token(credentials)
    except IdentityTokenConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    except IdentityTokenValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
