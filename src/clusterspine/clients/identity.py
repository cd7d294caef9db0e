"""Caller identity from the bearer token.

The API gateway verifies token signatures, so claims are read here without
verification. Authorized node groups are the token's realm roles minus the
roles every Keycloak user carries.
"""

from __future__ import annotations

from typing import Any

import jwt

from clusterspine.core.errors import AuthenticationError, MissingConfigError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import Principal
from clusterspine.core.settings import ClusterSpineSettings

logger = get_logger(__name__)

NON_GROUP_ROLES = frozenset({"offline_access", "uma_authorization"})


def load_token(settings: ClusterSpineSettings) -> str:
    """Token from settings, else from the token cache file.

    Raises:
        MissingConfigError: Neither is available.
    """
    if settings.token is not None:
        return settings.token.get_secret_value()
    path = settings.token_file
    if path.is_file():
        token = path.read_text(encoding="utf-8").strip()
        if token:
            return token
    raise MissingConfigError(
        "token",
        f"No access token: set CLUSTER_SPINE_TOKEN or write one to {path}",
    )


class JwtIdentityProvider:
    """:class:`IdentityProvider` over an unverified JWT."""

    def __init__(self, token: str):
        try:
            self.claims: dict[str, Any] = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise AuthenticationError(f"Access token cannot be decoded: {e}", cause=e) from e

    def authorized_scopes(self) -> frozenset[str]:
        roles = (self.claims.get("realm_access") or {}).get("roles") or []
        return frozenset(
            role for role in roles if role not in NON_GROUP_ROLES and not role.startswith("default-roles-")
        )

    def principal(self) -> Principal:
        return Principal(
            name=self.claims.get("name", ""),
            username=self.claims.get("preferred_username", ""),
        )
