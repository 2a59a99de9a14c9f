from __future__ import annotations

import uuid
from collections.abc import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from scoped_api.db.session import get_db
from scoped_api.registry import ResourceRegistry
from scoped_api.repository import ScopedRepository
from scoped_api.security.gate import AuthorizationGate
from scoped_api.security.permissions import Action


def get_gate(request: Request) -> AuthorizationGate:
    gate = getattr(request.app.state, "gate", None)
    if gate is None:
        raise RuntimeError("Authorization gate not configured. Was the app built with create_app()?")
    return gate


def get_registry(request: Request) -> ResourceRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Resource registry not configured. Was the app built with create_app()?")
    return registry


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    return request_id or uuid.uuid4().hex


def scoped_repository(resource_name: str, action: Action) -> Callable[..., ScopedRepository]:
    """
    Build the dependency that guards one (resource, action) route.

    The dependency runs the authorization gate before the route handler; a
    rejection raises before the handler (and any persistence it would do)
    is reached. On admission it hands the handler a repository bound to this
    request only.
    """

    def dependency(
        request: Request,
        gate: AuthorizationGate = Depends(get_gate),
        db: Session = Depends(get_db),
    ) -> ScopedRepository:
        context = gate.admit(
            authorization=request.headers.get(gate.security.auth.authorization_header),
            query_params=request.query_params,
            db=db,
            resource_name=resource_name,
            action=action,
            request_id=get_request_id(request),
        )
        return ScopedRepository(context, db)

    dependency.__name__ = f"scoped_repository_{resource_name}_{action.value}"
    return dependency
