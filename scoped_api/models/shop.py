from __future__ import annotations

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from scoped_api.db.base import Base
from scoped_api.errors import ValidationFailed
from scoped_api.models.base import OwnedResource, Resource


class Product(Resource, Base):
    """Catalog entry; global, so visible to every caller with ``product.read``."""

    __tablename__ = "products"
    __resource_name__ = "product"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    def validate(self) -> None:
        super().validate()
        if not self.name.strip():
            raise ValidationFailed("name must not be empty")
        if self.price < 0:
            raise ValidationFailed("price must not be negative")


class Order(OwnedResource, Base):
    """Customer order; owned, so each caller only sees their own orders."""

    __tablename__ = "orders"
    __resource_name__ = "order"

    item: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def validate(self) -> None:
        super().validate()
        if not self.item.strip():
            raise ValidationFailed("item must not be empty")
        if self.quantity is not None and self.quantity < 1:
            raise ValidationFailed("quantity must be at least 1")
