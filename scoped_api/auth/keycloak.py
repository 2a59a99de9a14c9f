"""
Keycloak implementation of ``AuthProvider``.

Two different calls are involved:

1. ``validate`` asks Keycloak's token introspection endpoint whether the
   token is still active. This is the only network round trip to the
   validation API per request, and it is what makes revocation effective on
   the very next request.
2. ``resolve_identity`` / ``resolve_roles`` read claims from the token
   itself after checking its signature, issuer, audience and lifetime
   against the realm's public keys (cached, see ``jwks_cache``).
"""

from __future__ import annotations

import logging
from typing import Any

import jwt
import requests

from .config import KeycloakConfig
from .jwks_cache import JWKSCache
from .provider import AuthProviderError, Identity, TokenValidationError

logger = logging.getLogger(__name__)


def _get_kid(token: str) -> str | None:
    """Read ``kid`` from the JWT header without validating the token."""
    try:
        header = jwt.get_unverified_header(token)
        return header.get("kid") if isinstance(header, dict) else None
    except jwt.InvalidTokenError:
        return None


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return str(value) if value not in (None, "") else None


def _extract_identity(payload: dict[str, Any]) -> Identity:
    """
    Build an ``Identity`` from validated claims.

    Claim mapping (Keycloak access tokens):

    * **sub** - subject id, stable per realm user. Required.
    * **preferred_username**, **given_name**, **family_name**, **email** -
      profile attributes; present when the ``profile``/``email`` scopes are
      mapped into the access token. Display only.
    """

    subject = payload.get("sub")
    if not subject:
        raise AuthProviderError("token has no subject")

    return Identity(
        subject_id=str(subject),
        username=_optional_str(payload, "preferred_username"),
        given_name=_optional_str(payload, "given_name"),
        family_name=_optional_str(payload, "family_name"),
        email=_optional_str(payload, "email"),
    )


def _extract_roles(payload: dict[str, Any]) -> list[str]:
    """Realm roles from ``realm_access.roles``; missing claim means no roles."""
    realm_access = payload.get("realm_access")
    if not isinstance(realm_access, dict):
        return []
    raw_roles = realm_access.get("roles")
    if isinstance(raw_roles, list):
        return [str(r) for r in raw_roles]
    if isinstance(raw_roles, str):
        return [raw_roles]
    return []


class KeycloakAuthProvider:
    def __init__(self, config: KeycloakConfig | None = None) -> None:
        self._config = config or KeycloakConfig.from_environ()
        self._jwks = JWKSCache(
            self._config.jwks_uri,
            self._config.jwks_cache_ttl_seconds,
            timeout_seconds=self._config.timeout_seconds,
        )

    def validate(self, token: str) -> None:
        data = {
            "token": token,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }
        try:
            resp = requests.post(self._config.introspection_uri, data=data, timeout=self._config.timeout_seconds)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            logger.warning("Token introspection failed: %s", type(e).__name__)
            raise AuthProviderError("token introspection failed") from e
        except ValueError as e:
            logger.warning("Token introspection returned a non-JSON body")
            raise AuthProviderError("token introspection failed") from e

        if not isinstance(body, dict) or body.get("active") is not True:
            logger.info("Token is not active")
            raise TokenValidationError("token is not active")

    def _decode(self, token: str) -> dict[str, Any]:
        kid = _get_kid(token)
        if not kid:
            raise TokenValidationError("Invalid token: missing key id")

        try:
            signing_key = self._jwks.get_signing_key(kid)
        except requests.RequestException as e:
            logger.warning("JWKS fetch failed: %s", type(e).__name__)
            raise AuthProviderError("cannot fetch realm signing keys") from e
        if signing_key is None:
            raise TokenValidationError("Invalid token: unknown signing key")

        audience = self._config.audience
        try:
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=audience,
                issuer=self._config.issuer,
                leeway=self._config.clock_skew_seconds,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_iss": True,
                    "verify_aud": audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenValidationError("Token expired") from e
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise TokenValidationError("Invalid token") from e

    def resolve_identity(self, token: str) -> Identity:
        return _extract_identity(self._decode(token))

    def resolve_roles(self, token: str) -> list[str]:
        return _extract_roles(self._decode(token))
