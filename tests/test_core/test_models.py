"""Tests for the Resource capability set: payload decoding, validation, replace values."""

import pytest

from scoped_api.errors import ValidationFailed
from scoped_api.models.shop import Order, Product


def test_apply_payload_ignores_server_fields_and_unknown_keys():
    order = Order()
    order.apply_payload(
        {
            "id": "11111111-1111-1111-1111-111111111111",
            "owner_id": "someone-else",
            "created_at": "2020-01-01T00:00:00",
            "item": "tea",
            "colour": "green",
        }
    )
    assert order.item == "tea"
    assert order.id is None
    assert order.owner_id is None
    assert not hasattr(order, "colour")


def test_apply_payload_coerces_values():
    product = Product()
    product.apply_payload({"name": "Kettle", "price": "19.5"})
    assert product.price == 19.5


def test_apply_payload_rejects_wrong_types():
    order = Order()
    with pytest.raises(ValidationFailed, match="quantity"):
        order.apply_payload({"item": "tea", "quantity": "lots"})


def test_apply_payload_rejects_integers_outside_int64():
    order = Order()
    with pytest.raises(ValidationFailed, match="quantity.*out of range"):
        order.apply_payload({"item": "tea", "quantity": 10**20})
    order.apply_payload({"item": "tea", "quantity": 2**63 - 1})
    assert order.quantity == 2**63 - 1


def test_validate_requires_non_nullable_fields_without_default():
    with pytest.raises(ValidationFailed, match="item"):
        Order().validate()
    with pytest.raises(ValidationFailed, match="name, price"):
        Product().validate()


def test_validate_domain_rules():
    order = Order()
    order.apply_payload({"item": "tea", "quantity": 0})
    with pytest.raises(ValidationFailed, match="quantity"):
        order.validate()

    product = Product()
    product.apply_payload({"name": "Kettle", "price": -1})
    with pytest.raises(ValidationFailed, match="price"):
        product.validate()


def test_replacement_values_fall_back_to_defaults():
    order = Order()
    order.apply_payload({"item": "tea"})
    values = order.replacement_values()
    assert values == {"item": "tea", "quantity": 1, "status": "new", "note": None}


def test_writable_columns_exclude_server_fields():
    assert set(Order.writable_columns()) == {"item", "quantity", "status", "note"}
    assert set(Product.writable_columns()) == {"name", "description", "price"}
