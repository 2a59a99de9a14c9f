"""
Identity-provider access: validate bearer tokens and read identity + roles.

This package has no dependency on other scoped_api packages (db, security, etc.).
The gate talks to it only through the ``AuthProvider`` protocol.
"""

from .config import KeycloakConfig
from .keycloak import KeycloakAuthProvider
from .provider import AuthProvider, AuthProviderError, Identity, TokenValidationError

__all__ = [
    "AuthProvider",
    "AuthProviderError",
    "Identity",
    "KeycloakAuthProvider",
    "KeycloakConfig",
    "TokenValidationError",
]
