from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from scoped_api.security.permissions import parse_permission

logger = logging.getLogger(__name__)


class SecurityConfigError(ValueError):
    """Raised when the security YAML configuration is invalid."""


class AuthConfig(BaseModel):
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class RoleRule(BaseModel):
    permissions: list[str] = Field(default_factory=list)
    extends: str | None = None
    description: str | None = None

    @field_validator("permissions")
    @classmethod
    def _check_permissions(cls, value: list[str]) -> list[str]:
        for permission in value:
            parse_permission(permission)
        return value


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    roles: dict[str, RoleRule] = Field(default_factory=dict)


def _compute_effective_permissions(roles: Mapping[str, RoleRule]) -> dict[str, frozenset[str]]:
    """
    Resolve role inheritance (``extends``) and compute effective permissions per role.

    Unknown parents and cycles raise SecurityConfigError.
    """

    for name, role in roles.items():
        if role.extends and role.extends not in roles:
            raise SecurityConfigError(f"role {name!r} extends unknown role {role.extends!r}")

    effective: dict[str, frozenset[str]] = {}
    visiting: set[str] = set()

    def dfs(role_name: str) -> frozenset[str]:
        if role_name in effective:
            return effective[role_name]
        if role_name in visiting:
            raise SecurityConfigError(f"cycle detected in role inheritance at {role_name!r}")
        visiting.add(role_name)
        role = roles[role_name]
        perms = set(role.permissions)
        if role.extends:
            perms.update(dfs(role.extends))
        result = frozenset(perms)
        effective[role_name] = result
        visiting.remove(role_name)
        return result

    for name in roles:
        dfs(name)

    return effective


class SecurityConfig:
    """
    Runtime helper around the validated config: the static role → permission table.

    Built once at startup and read-only afterwards.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model
        self._effective = _compute_effective_permissions(model.roles)

    @classmethod
    def from_mapping(cls, role_permissions: Mapping[str, Iterable[str]], auth: AuthConfig | None = None) -> SecurityConfig:
        """Build a config from a plain ``{role: [permission, ...]}`` mapping."""
        model = SecurityConfigModel(
            auth=auth or AuthConfig(),
            roles={role: RoleRule(permissions=list(perms)) for role, perms in role_permissions.items()},
        )
        return cls(model)

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    @property
    def role_permissions(self) -> Mapping[str, frozenset[str]]:
        return dict(self._effective)

    def permissions_for(self, roles: Iterable[str]) -> frozenset[str]:
        """
        Expand role labels into permissions.

        Roles with no mapping contribute nothing; they are not an error.
        """

        perms: set[str] = set()
        for role in roles:
            perms.update(self._effective.get(role, frozenset()))
        return frozenset(perms)


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise SecurityConfigError(f"Missing top-level 'security' key in config: {path}")

    try:
        model = SecurityConfigModel.model_validate(raw["security"])
    except ValueError as exc:
        raise SecurityConfigError(f"Invalid security config {path}: {exc}") from exc

    config = SecurityConfig(model)
    logger.info("Loaded %d role mappings from %s", len(model.roles), path)
    return config
