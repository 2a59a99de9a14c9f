from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scoped_api.errors import MalformedBody, NotFound, PersistenceError, Unauthorized, ValidationFailed
from scoped_api.models.base import OwnedResource, Resource, utcnow
from scoped_api.schemas.envelopes import ListOut
from scoped_api.security.context import RequestContext


def decode_body(raw_body: bytes | str | Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Decode a request body into a JSON object; anything else is MalformedBody."""
    if isinstance(raw_body, Mapping):
        return raw_body
    if raw_body is None or (isinstance(raw_body, (bytes, str)) and not raw_body.strip()):
        raise MalformedBody("request body must be a JSON object")
    try:
        payload = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedBody("request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedBody("request body must be a JSON object")
    return payload


class ScopedRepository:
    """
    Generic CRUD over one registered resource, for one admitted request.

    Every read goes through ``context.scope``, so ownership filtering and
    pagination are decided once by the gate and applied the same way to
    counts, pages and single-row lookups.
    """

    def __init__(self, context: RequestContext, db: Session) -> None:
        self.context = context
        self.db = db
        self.scope = context.scope
        self.resource = context.resource
        self.log = context.logger

    @property
    def model(self) -> type:
        return self.resource.model

    def _blank(self) -> Resource:
        # Raises TypeMismatch when the registered type is not a Resource.
        return self.context.registry.instantiate(self.resource.name)

    def _find(self, object_id: str) -> Resource:
        stmt = self.scope.owned(select(self.model).where(self.model.id == object_id), self.model)
        try:
            found = self.db.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise self._persistence_error("load", exc) from exc
        if found is None:
            raise NotFound(f"{self.resource.name} {object_id} not found")
        return found

    def _persistence_error(self, operation: str, exc: SQLAlchemyError) -> PersistenceError:
        self.db.rollback()
        self.log.error("Persistence failure resource=%s operation=%s error=%s", self.resource.name, operation, exc)
        return PersistenceError(f"cannot {operation} {self.resource.name}")

    def list(self) -> ListOut:
        self._blank()
        count_stmt = self.scope.owned(select(func.count()).select_from(self.model), self.model)
        page_stmt = self.scope.paginate(
            self.scope.owned(select(self.model).order_by(self.model.created_at, self.model.id), self.model)
        )
        try:
            count = self.db.scalar(count_stmt) or 0
            rows = list(self.db.scalars(page_stmt).all())
        except SQLAlchemyError as exc:
            raise self._persistence_error("list", exc) from exc

        self.log.debug("Listed resource=%s count=%s returned=%s", self.resource.name, count, len(rows))
        return ListOut(
            count=count,
            page=self.scope.page,
            page_size=self.scope.page_size,
            data=[row.to_dict() for row in rows],
        )

    def get(self, object_id: str) -> Resource:
        self._blank()
        return self._find(object_id)

    def create(self, raw_body: bytes | str | Mapping[str, Any] | None) -> Resource:
        obj = self._blank()
        obj.apply_payload(decode_body(raw_body))
        obj.validate()

        if not self.resource.is_global and isinstance(obj, OwnedResource):
            owner_id = self.scope.owner_id
            if owner_id is not None:
                obj.set_owner_id(owner_id)
            elif not self.scope.has_global_permission:
                raise Unauthorized(f"cannot create {self.resource.name} without an owner")

        try:
            if obj.get_id() is not None and self.db.get(self.model, obj.get_id()) is not None:
                raise ValidationFailed(f"{self.resource.name} conflicts with an existing row")
            self.db.add(obj)
            self.db.commit()
            self.db.refresh(obj)
        except IntegrityError as exc:
            self.db.rollback()
            self.log.info("Create rejected resource=%s error=%s", self.resource.name, exc.orig)
            raise ValidationFailed(f"{self.resource.name} conflicts with an existing row") from exc
        except SQLAlchemyError as exc:
            raise self._persistence_error("create", exc) from exc

        self.log.debug("Created resource=%s id=%s", self.resource.name, obj.get_id())
        return obj

    def update(self, object_id: str, raw_body: bytes | str | Mapping[str, Any] | None) -> Resource:
        """
        Replace the writable fields of an existing row.

        The existing row is loaded only to prove it exists within the caller's
        scope; it is not merged. Fields missing from the body are reset to
        their default (or NULL). The path id always wins over a body id.
        """

        obj = self._blank()
        obj.apply_payload(decode_body(raw_body))
        obj.set_id(object_id)
        obj.validate()

        self._find(object_id)

        values = obj.replacement_values()
        values["updated_at"] = utcnow()
        stmt = update(self.model).where(self.model.id == object_id).values(**values)
        try:
            self.db.execute(stmt, execution_options={"synchronize_session": False})
            self.db.commit()
            self.db.expire_all()
        except SQLAlchemyError as exc:
            raise self._persistence_error("update", exc) from exc

        self.log.debug("Updated resource=%s id=%s", self.resource.name, object_id)
        return self._find(object_id)

    def delete(self, object_id: str) -> None:
        self._blank()
        obj = self._find(object_id)
        try:
            self.db.delete(obj)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._persistence_error("delete", exc) from exc
        self.log.debug("Deleted resource=%s id=%s", self.resource.name, object_id)
