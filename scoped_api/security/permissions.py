from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """
    Closed set of permission actions.

    ``GLOBAL`` is a modifier: it waives ownership filtering for a resource and
    is never required by a CRUD route on its own.
    """

    READ = "read"
    WRITE = "write"
    GLOBAL = "global"


def permission_name(resource_name: str, action: Action | str) -> str:
    token = action.value if isinstance(action, Action) else action
    return f"{resource_name}.{token}"


def authorized(resource_name: str, action: Action | str, permissions: Iterable[str]) -> bool:
    """
    Return True if ``permissions`` contains ``<resource_name>.<action>``.

    Matching is case-insensitive. No resource existence check is done here:
    an unknown resource simply never matches.
    """

    wanted = permission_name(resource_name, action).casefold()
    for candidate in permissions:
        if candidate.casefold() == wanted:
            return True
    return False


def has_global_permission(resource_name: str, permissions: Iterable[str]) -> bool:
    return authorized(resource_name, Action.GLOBAL, permissions)


def parse_permission(value: str) -> tuple[str, Action]:
    """
    Split ``<resource>.<action>`` into its parts.

    Raises ValueError when the action is outside the closed set.
    """

    resource_name, sep, token = value.strip().rpartition(".")
    if not sep or not resource_name:
        raise ValueError(f"permission {value!r} must look like '<resource>.<action>'")
    try:
        action = Action(token.lower())
    except ValueError as exc:
        allowed = ", ".join(a.value for a in Action)
        raise ValueError(f"permission {value!r} has unknown action {token!r} (allowed: {allowed})") from exc
    return resource_name, action
