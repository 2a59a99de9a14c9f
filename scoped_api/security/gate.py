from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scoped_api.auth.provider import AuthProvider, Identity
from scoped_api.errors import ApiError, PersistenceError
from scoped_api.logging_config import request_logger
from scoped_api.registry import ResourceRegistry
from scoped_api.scope import AccessScope, PageBounds
from scoped_api.security.config import SecurityConfig
from scoped_api.security.context import RequestContext
from scoped_api.security.permissions import Action, authorized, permission_name
from scoped_api.security.users import materialize_user

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = "unauthorized, missing bearer authorization header"
MALFORMED_CREDENTIAL_MESSAGE = "unauthorized, invalid bearer authorization header"
UNAUTHORIZED_MESSAGE = "unauthorized"


class Rejection(str, Enum):
    MISSING_OR_MALFORMED_CREDENTIAL = "missing_or_malformed_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    IDENTITY_RESOLUTION_FAILED = "identity_resolution_failed"
    PERSISTENCE_ERROR = "persistence_error"
    ROLE_RESOLUTION_FAILED = "role_resolution_failed"
    FORBIDDEN = "forbidden"


class Rejected(ApiError):
    """
    Terminal gate outcome. Always rendered as 401; ``reason`` is for logs and tests,
    the caller only sees ``message``.
    """

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(
        self,
        reason: Rejection,
        message: str = UNAUTHORIZED_MESSAGE,
        *,
        resource_name: str | None = None,
        action: Action | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.resource_name = resource_name
        self.action = action


class AuthorizationGate:
    """
    Request-boundary state machine.

    ParseCredential -> ValidateCredential -> ResolveIdentity ->
    MaterializeLocalUser -> ResolveRoles -> ExpandPermissions -> Authorize ->
    Admit. Every failure raises ``Rejected``; nothing is retried. The provider,
    security config and registry are shared read-only between requests.
    """

    def __init__(
        self,
        provider: AuthProvider,
        security: SecurityConfig,
        registry: ResourceRegistry,
        bounds: PageBounds,
    ) -> None:
        self.provider = provider
        self.security = security
        self.registry = registry
        self.bounds = bounds

    def parse_credential(self, header_value: str | None) -> str:
        """
        Extract the token from ``<scheme> <token>``.

        The scheme comparison is case-insensitive. Anything that is not longer
        than the scheme itself counts as missing.
        """

        prefix = self.security.auth.bearer_prefix
        if not header_value or len(header_value) <= len(prefix):
            raise Rejected(Rejection.MISSING_OR_MALFORMED_CREDENTIAL, MISSING_CREDENTIAL_MESSAGE)

        scheme = header_value[: len(prefix)]
        separator = header_value[len(prefix)]
        if scheme.lower() != prefix.lower() or not separator.isspace():
            raise Rejected(Rejection.MISSING_OR_MALFORMED_CREDENTIAL, MALFORMED_CREDENTIAL_MESSAGE)

        token = header_value[len(prefix) :].strip()
        if not token:
            raise Rejected(Rejection.MISSING_OR_MALFORMED_CREDENTIAL, MALFORMED_CREDENTIAL_MESSAGE)
        return token

    def admit(
        self,
        *,
        authorization: str | None,
        query_params: Mapping[str, Any],
        db: Session,
        resource_name: str,
        action: Action,
        request_id: str,
    ) -> RequestContext:
        log = request_logger(__name__, request_id)

        try:
            token = self.parse_credential(authorization)
        except Rejected:
            log.info("Rejected request: missing or malformed %s header", self.security.auth.authorization_header)
            raise

        try:
            self.provider.validate(token)
        except Exception as e:
            log.warning("Rejected request: invalid credential (%s)", type(e).__name__)
            raise Rejected(Rejection.INVALID_CREDENTIAL) from e

        try:
            identity = self.provider.resolve_identity(token)
        except Exception as e:
            log.warning("Rejected request: cannot resolve identity (%s)", type(e).__name__)
            raise Rejected(Rejection.IDENTITY_RESOLUTION_FAILED) from e

        try:
            user = materialize_user(db, identity)
        except PersistenceError as e:
            log.error("Rejected request: cannot materialize local user (%s)", e.__cause__ or e)
            raise Rejected(Rejection.PERSISTENCE_ERROR) from e

        try:
            roles = list(self.provider.resolve_roles(token))
        except Exception as e:
            log.warning("Rejected request: cannot resolve roles (%s)", type(e).__name__)
            raise Rejected(Rejection.ROLE_RESOLUTION_FAILED) from e

        permissions = self.security.permissions_for(roles)

        if not authorized(resource_name, action, permissions):
            required = permission_name(resource_name, action)
            log.warning("Rejected request: no permission %s user_id=%s roles=%s", required, user.id, sorted(roles))
            raise Rejected(
                Rejection.FORBIDDEN,
                f"unauthorized, no permission for {required}",
                resource_name=resource_name,
                action=action,
            )

        descriptor = self.registry.descriptor(resource_name)
        scope = AccessScope.from_query(
            query_params,
            resource_name=resource_name,
            owner_id=user.id,
            is_global_resource=descriptor.is_global,
            permissions=permissions,
            bounds=self.bounds,
        )

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error("Rejected request: cannot commit local user (%s)", e)
            raise Rejected(Rejection.PERSISTENCE_ERROR) from e

        log.debug(
            "Admitted user_id=%s resource=%s action=%s global=%s owner_filtered=%s permissions=%s",
            user.id,
            resource_name,
            action.value,
            descriptor.is_global,
            scope.owner_filtered,
            sorted(permissions),
        )

        return RequestContext(
            request_id=request_id,
            identity=Identity(
                subject_id=user.id,
                username=user.username,
                given_name=user.given_name,
                family_name=user.family_name,
                email=user.email,
            ),
            user_id=user.id,
            roles=frozenset(roles),
            permissions=permissions,
            action=action,
            resource=descriptor,
            registry=self.registry,
            scope=scope,
            logger=request_logger("scoped_api.repository", request_id),
        )
