from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, false

from scoped_api.security.permissions import has_global_permission

PAGE_PARAM = "page"
PAGE_SIZE_PARAM = "page_size"

# Range of a signed 64-bit SQL INTEGER.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class PageBounds:
    """Closed interval that every effective page size is clamped into."""

    min_page_size: int = 10
    max_page_size: int = 500

    def __post_init__(self) -> None:
        if self.min_page_size < 1:
            raise ValueError("min_page_size must be at least 1")
        if self.max_page_size < self.min_page_size:
            raise ValueError("max_page_size must not be lower than min_page_size")

    def clamp(self, requested: int) -> int:
        return max(self.min_page_size, min(requested, self.max_page_size))


def _to_int(raw: Any) -> int:
    # Wrong, missing or out of range values are handled as 0.
    if raw is None:
        return 0
    text = str(raw).strip()
    if not _INT_PATTERN.fullmatch(text):
        return 0
    value = int(text)
    if not INT64_MIN <= value <= INT64_MAX:
        return 0
    return value


def resolve_page_size(raw: Any, bounds: PageBounds) -> int:
    return bounds.clamp(_to_int(raw))


def resolve_page(raw: Any) -> int:
    page = _to_int(raw)
    return page if page > 0 else 1


@dataclass(frozen=True)
class AccessScope:
    """
    Per-request pagination window + ownership predicate.

    Built once by the authorization gate and never mutated. Every query the
    repository runs for a request goes through the same instance, so the
    row count and the returned page always agree.
    """

    resource_name: str
    page_size: int
    page: int
    owner_id: str | None
    is_global_resource: bool
    permissions: frozenset[str]

    @classmethod
    def from_query(
        cls,
        params: Mapping[str, Any],
        *,
        resource_name: str,
        owner_id: str | None,
        is_global_resource: bool,
        permissions: Iterable[str],
        bounds: PageBounds,
    ) -> AccessScope:
        return cls(
            resource_name=resource_name,
            page_size=resolve_page_size(params.get(PAGE_SIZE_PARAM), bounds),
            page=resolve_page(params.get(PAGE_PARAM)),
            owner_id=owner_id or None,
            is_global_resource=is_global_resource,
            permissions=frozenset(permissions),
        )

    @property
    def offset(self) -> int:
        return min((self.page - 1) * self.page_size, INT64_MAX)

    @property
    def has_global_permission(self) -> bool:
        return has_global_permission(self.resource_name, self.permissions)

    @property
    def owner_filtered(self) -> bool:
        """True when rows must be restricted to the caller's own rows."""
        return not self.is_global_resource and not self.has_global_permission

    def owned(self, stmt: Select, model: type) -> Select:
        """Apply the ownership predicate for ``model`` to ``stmt``."""
        if not self.owner_filtered:
            return stmt
        if self.owner_id is None:
            # No owner key: match nothing rather than everything.
            return stmt.where(false())
        return stmt.where(model.owner_id == self.owner_id)

    def paginate(self, stmt: Select) -> Select:
        return stmt.offset(self.offset).limit(self.page_size)
