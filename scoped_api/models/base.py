from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, ClassVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapped, mapped_column

from scoped_api.errors import ValidationFailed
from scoped_api.scope import INT64_MAX, INT64_MIN


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


@lru_cache(maxsize=None)
def _adapter(python_type: type) -> TypeAdapter:
    return TypeAdapter(python_type)


def _coerce(name: str, column: Column, value: Any) -> Any:
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    try:
        coerced = _adapter(python_type).validate_python(value)
    except PydanticValidationError as exc:
        raise ValidationFailed(f"invalid value for field {name!r}: expected {python_type.__name__}") from exc
    if isinstance(column.type, Integer) and not INT64_MIN <= coerced <= INT64_MAX:
        raise ValidationFailed(f"invalid value for field {name!r}: integer out of range")
    return coerced


class Resource:
    """
    Capability set shared by every domain type served through the API.

    Concrete types combine this mixin with ``Base`` and declare
    ``__resource_name__``. A plain ``Resource`` is *global*: every caller with
    the right permission sees every row. Use ``OwnedResource`` for types whose
    rows belong to the caller that created them.

    Server-managed fields (``__server_fields__``) are never taken from a
    request body.
    """

    __resource_name__: ClassVar[str]
    __server_fields__: ClassVar[frozenset[str]] = frozenset({"id", "created_at", "updated_at"})
    # Path ids must be canonical UUIDs unless a type opts out.
    __uuid_ids__: ClassVar[bool] = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def get_id(self) -> str | None:
        return self.id

    def set_id(self, value: str) -> None:
        self.id = value

    @classmethod
    def writable_columns(cls) -> dict[str, Column]:
        mapper = sa_inspect(cls)
        return {
            attr.key: attr.columns[0]
            for attr in mapper.column_attrs
            if attr.key not in cls.__server_fields__
        }

    def apply_payload(self, payload: Mapping[str, Any]) -> None:
        """Copy known writable fields from a decoded body; unknown keys are ignored."""
        for name, column in self.writable_columns().items():
            if name in payload:
                setattr(self, name, _coerce(name, column, payload[name]))

    def validate(self) -> None:
        """
        Structural validation run before every create/update.

        The base check rejects missing values for NOT NULL columns without a
        default. Subclasses extend it with their own rules and call super().
        """

        missing = []
        for name, column in self.writable_columns().items():
            if column.nullable or column.default is not None or column.server_default is not None:
                continue
            if getattr(self, name) is None:
                missing.append(name)
        if missing:
            raise ValidationFailed(f"missing required field(s): {', '.join(sorted(missing))}")

    def replacement_values(self) -> dict[str, Any]:
        """
        Values for a full-row replace: omitted fields fall back to their
        scalar column default, or NULL.
        """

        values: dict[str, Any] = {}
        for name, column in self.writable_columns().items():
            value = getattr(self, name)
            if value is None and column.default is not None and column.default.is_scalar:
                value = column.default.arg
            values[name] = value
        return values

    def to_dict(self) -> dict[str, Any]:
        mapper = sa_inspect(type(self))
        return {attr.key: getattr(self, attr.key) for attr in mapper.column_attrs}


class OwnedResource(Resource):
    """A resource whose rows are scoped to the identity that created them."""

    __server_fields__: ClassVar[frozenset[str]] = Resource.__server_fields__ | {"owner_id"}

    owner_id: Mapped[str | None] = mapped_column(String(255), ForeignKey("users.id"), nullable=True, index=True)

    def set_owner_id(self, owner_id: str) -> None:
        self.owner_id = owner_id
