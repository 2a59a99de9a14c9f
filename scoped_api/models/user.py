from __future__ import annotations

from typing import ClassVar

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from scoped_api.db.base import Base
from scoped_api.errors import ValidationFailed
from scoped_api.models.base import Resource

USER_ID_MAX_LENGTH = 255


class User(Resource, Base):
    """
    Local record of an identity-provider subject.

    Created on the first authenticated request of a subject and keyed by the
    provider's subject id, so ``id`` is not generated here. Creating a user
    through the API (pre-provisioning a subject) takes ``id`` from the body.
    """

    __tablename__ = "users"
    __resource_name__ = "user"
    __server_fields__: ClassVar[frozenset[str]] = frozenset({"created_at", "updated_at"})
    __uuid_ids__ = False

    id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), primary_key=True)

    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    given_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    family_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def validate(self) -> None:
        super().validate()
        # Must stay addressable as a path id.
        if not self.id.strip() or self.id != self.id.strip():
            raise ValidationFailed("id must be non-empty without surrounding whitespace")
        if len(self.id) > USER_ID_MAX_LENGTH:
            raise ValidationFailed(f"id must be at most {USER_ID_MAX_LENGTH} characters")
