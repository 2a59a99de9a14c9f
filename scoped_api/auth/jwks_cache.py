"""
JWKS fetch and cache with TTL.

Keycloak signs access tokens with the realm's private key and publishes the
public half at ``/realms/<realm>/protocol/openid-connect/certs``. Only the
public keys are cached here; tokens and claims never are. When a token
carries a ``kid`` we have not seen (key rotation), the cache is refreshed
once before giving up.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests
from jwt import PyJWK

logger = logging.getLogger(__name__)


class JWKSCache:
    """In-memory cache of a JSON Web Key Set, refreshed after ``ttl_seconds``."""

    def __init__(self, jwks_uri: str, ttl_seconds: int, timeout_seconds: int = 10) -> None:
        self._uri = jwks_uri
        self._ttl = ttl_seconds
        self._timeout = timeout_seconds
        self._data: dict[str, Any] | None = None
        self._fetched_at: float = 0.0

    def _fetch(self) -> dict[str, Any]:
        resp = requests.get(self._uri, timeout=self._timeout)
        resp.raise_for_status()
        return resp.json()

    def _refresh(self) -> dict[str, Any]:
        self._data = self._fetch()
        self._fetched_at = time.monotonic()
        logger.debug("JWKS cache refreshed uri=%s", self._uri)
        return self._data

    def _ensure_fresh(self) -> dict[str, Any]:
        now = time.monotonic()
        if self._data is None or (now - self._fetched_at) >= self._ttl:
            return self._refresh()
        return self._data

    def _find_key(self, kid: str, data: dict[str, Any]) -> PyJWK | None:
        for key_dict in data.get("keys") or []:
            if key_dict.get("kid") == kid and key_dict.get("use", "sig") == "sig":
                return PyJWK.from_dict(key_dict)
        return None

    def get_signing_key(self, kid: str) -> PyJWK | None:
        data = self._ensure_fresh()
        key = self._find_key(kid, data)
        if key is not None:
            return key

        logger.info("kid not in cached JWKS; refreshing for possible key rotation")
        data = self._refresh()
        return self._find_key(kid, data)
