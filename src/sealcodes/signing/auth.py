"""Caller identity resolution (external auth collaborator).

The signing service never authenticates users itself: it hands the bearer
token to an ``IdentityResolver`` and compares the result with the package.
"""
from __future__ import annotations

from typing import Dict, Optional, Protocol

import httpx

from .. import config
from ..attestation.model import Identity
from ..errors import Unauthorized
from ..utils.logging import get_logger

log = get_logger(__name__)


class IdentityResolver(Protocol):
    def resolve(self, token: str) -> Optional[Identity]: ...


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("Missing authorization header")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Invalid authentication token")
    return token.strip()


class StaticIdentityResolver:
    """Token -> identity table (development and tests)."""

    def __init__(self, tokens: Optional[Dict[str, Identity]] = None):
        self.tokens = dict(tokens or {})

    def resolve(self, token: str) -> Optional[Identity]:
        return self.tokens.get(token)


class HttpIdentityResolver:
    """Resolves tokens against a GoTrue-style ``GET /user`` endpoint.

    The user's ``email`` becomes the identifier; ``app_metadata.provider``
    the provider (``"unknown"`` when absent).
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url or config.AUTH_USER_URL
        self.api_key = api_key if api_key is not None else config.AUTH_API_KEY
        self.timeout = timeout or config.AUTH_TIMEOUT_SEC
        self._client = client

    def _get(self, headers: Dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return self._client.get(self.url, headers=headers)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(self.url, headers=headers)

    def resolve(self, token: str) -> Optional[Identity]:
        if not self.url:
            log.error("AUTH_USER_URL not configured; cannot resolve caller identity")
            return None
        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        try:
            resp = self._get(headers)
        except httpx.HTTPError as e:
            log.warning(f"auth provider unreachable: {e}")
            return None
        if resp.status_code != 200:
            return None
        try:
            user = resp.json()
        except ValueError:
            log.warning("auth provider returned a non-JSON user body")
            return None
        if not isinstance(user, dict):
            log.warning("auth provider returned a user body that is not an object")
            return None
        email = user.get("email")
        if not email or not isinstance(email, str):
            return None
        meta = user.get("app_metadata")
        if not isinstance(meta, dict):
            meta = {}
        provider = meta.get("provider")
        if not provider or not isinstance(provider, str):
            provider = "unknown"
        return Identity(provider=provider, identifier=email)


__all__ = ["IdentityResolver", "StaticIdentityResolver", "HttpIdentityResolver", "bearer_token"]
