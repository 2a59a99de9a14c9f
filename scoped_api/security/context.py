from __future__ import annotations

import logging
from dataclasses import dataclass

from scoped_api.auth.provider import Identity
from scoped_api.registry import ResourceDescriptor, ResourceRegistry
from scoped_api.scope import AccessScope
from scoped_api.security.permissions import Action


@dataclass(frozen=True)
class RequestContext:
    """
    Per-request result of admission.

    Passed explicitly from the gate to the repository and the route handler;
    nothing in it is shared with another request.
    """

    request_id: str
    identity: Identity | None
    user_id: str | None
    roles: frozenset[str]
    permissions: frozenset[str]
    action: Action
    resource: ResourceDescriptor
    registry: ResourceRegistry
    scope: AccessScope
    logger: logging.LoggerAdapter
