"""Configuration from environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class KeycloakConfig:
    """
    Keycloak realm configuration from environment.

    Required:
        KEYCLOAK_URL: Base URL of the Keycloak server, e.g. https://sso.example.com
        KEYCLOAK_REALM: Realm that issues the access tokens.
        KEYCLOAK_CLIENT_ID: Confidential client used for token introspection.
        KEYCLOAK_CLIENT_SECRET: Secret of that client.

    Optional:
        KEYCLOAK_AUDIENCE: Expected ``aud`` claim; audience is not checked when unset.
        KEYCLOAK_TIMEOUT_SECONDS: Timeout for every call to Keycloak (default 10).
        CLOCK_SKEW_SECONDS: Seconds of tolerance for exp/nbf (default 120).
        JWKS_CACHE_TTL_SECONDS: How long to cache the realm signing keys (default 3600).
    """

    server_url: str
    realm: str
    client_id: str
    client_secret: str
    audience: str | None = None
    timeout_seconds: int = 10
    clock_skew_seconds: int = 120
    jwks_cache_ttl_seconds: int = 3600

    @property
    def issuer(self) -> str:
        return f"{self.server_url.rstrip('/')}/realms/{self.realm}"

    @property
    def introspection_uri(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/token/introspect"

    @property
    def jwks_uri(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    @classmethod
    def from_environ(cls) -> KeycloakConfig:
        url = _getenv("KEYCLOAK_URL")
        realm = _getenv("KEYCLOAK_REALM")
        client = _getenv("KEYCLOAK_CLIENT_ID")
        secret = _getenv("KEYCLOAK_CLIENT_SECRET")
        if not url or not realm or not client or not secret:
            raise ValueError("KEYCLOAK_URL, KEYCLOAK_REALM, KEYCLOAK_CLIENT_ID and KEYCLOAK_CLIENT_SECRET must be set")
        return cls(
            server_url=url.strip(),
            realm=realm.strip(),
            client_id=client.strip(),
            client_secret=secret.strip(),
            audience=_strip_or_none(_getenv("KEYCLOAK_AUDIENCE")),
            timeout_seconds=_getenv_int("KEYCLOAK_TIMEOUT_SECONDS", 10),
            clock_skew_seconds=_getenv_int("CLOCK_SKEW_SECONDS", 120),
            jwks_cache_ttl_seconds=_getenv_int("JWKS_CACHE_TTL_SECONDS", 3600),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None
