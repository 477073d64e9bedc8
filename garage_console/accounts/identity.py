"""Authenticated identities and the identity provider's session metadata API."""

from __future__ import annotations

import dataclasses
import logging
from functools import lru_cache
from typing import Any, Mapping, Protocol
from urllib.parse import quote

import requests

from ..config import AppSettings, get_settings
from ..errors import IdentityProviderError

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Identity:
    """A human authenticated by the identity provider.

    Attributes:
        id: Stable subject identifier issued by the provider; reused as the
            local user id when the user is provisioned.
        email: Verified e-mail address, the join key with local users.
        name: Display name.
        avatar_url: Profile picture URL, possibly empty.
    """

    id: str
    email: str
    name: str = ""
    avatar_url: str = ""

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Identity":
        """Build an identity from decoded token claims."""

        name = claims.get("name")
        if not name:
            parts = [claims.get("given_name"), claims.get("family_name")]
            name = " ".join(str(part) for part in parts if part)
        return cls(
            id=str(claims["sub"]),
            email=str(claims["email"]).lower(),
            name=name or str(claims["email"]),
            avatar_url=str(claims.get("picture") or ""),
        )


class IdentityProvider(Protocol):
    """Operations the console needs from the external identity provider."""

    def update_session_role(self, identity_id: str, role: str) -> None: ...


class NullIdentityProvider:
    """Provider used when no admin API is configured; role updates are skipped."""

    def update_session_role(self, identity_id: str, role: str) -> None:
        logger.debug(
            "Identity provider API not configured; skipping role %s for %s",
            role,
            identity_id,
        )


class HttpIdentityProvider:
    """Write session metadata through the identity provider's admin REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Identity provider base_url is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    def _metadata_url(self, identity_id: str) -> str:
        return f"{self._base_url}/v1/users/{quote(identity_id, safe='')}/metadata"

    def update_session_role(self, identity_id: str, role: str) -> None:
        """Store ``role`` in the private metadata of ``identity_id``.

        Raises:
            IdentityProviderError: When the request fails or is rejected.
        """

        url = self._metadata_url(identity_id)
        try:
            response = self._session.request(
                "PATCH",
                url,
                json={"private_metadata": {"role": role}},
                headers=self._headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Identity provider rejected role update for %s: %s", identity_id, exc)
            raise IdentityProviderError(
                "Could not update the session role with the identity provider."
            ) from exc
        logger.info("Updated identity provider role for %s to %s", identity_id, role)

    def close(self) -> None:
        self._session.close()


def build_identity_provider(settings: AppSettings | None = None) -> IdentityProvider:
    """Return the provider client matching the configured settings."""

    settings = settings or get_settings()
    if not settings.identity_api_url:
        return NullIdentityProvider()
    return HttpIdentityProvider(
        settings.identity_api_url,
        settings.identity_api_key,
        timeout=settings.identity_api_timeout,
    )


@lru_cache(maxsize=1)
def get_identity_provider_client() -> IdentityProvider:
    """Return the process-wide provider client, sharing one HTTP session."""

    return build_identity_provider()


def reset_identity_provider_cache() -> None:
    """Close and drop the cached provider client; call after settings change."""

    if get_identity_provider_client.cache_info().currsize:
        client = get_identity_provider_client()
        if isinstance(client, HttpIdentityProvider):
            client.close()
    get_identity_provider_client.cache_clear()


__all__ = [
    "HttpIdentityProvider",
    "Identity",
    "IdentityProvider",
    "NullIdentityProvider",
    "build_identity_provider",
    "get_identity_provider_client",
    "reset_identity_provider_cache",
]
