"""Tests for permission evaluation."""

import pytest

from scoped_api.security.permissions import Action, authorized, has_global_permission, parse_permission


def test_authorized_exact_match():
    assert authorized("order", Action.READ, ["order.read"]) is True
    assert authorized("order", Action.WRITE, ["order.read"]) is False


def test_authorized_is_case_insensitive():
    assert authorized("order", "read", ["ORDER.Read"]) is True
    assert authorized("Order", Action.WRITE, ["order.write"]) is True


def test_global_is_independent_of_read_and_write():
    perms = ["order.read", "order.write"]
    assert has_global_permission("order", perms) is False
    assert has_global_permission("order", ["order.global"]) is True
    # global alone does not grant read
    assert authorized("order", Action.READ, ["order.global"]) is False


def test_unknown_resource_never_matches():
    assert authorized("invoice", Action.READ, ["order.read", "product.read"]) is False


def test_empty_permission_set():
    assert authorized("order", Action.READ, []) is False


def test_prefix_is_not_a_match():
    assert authorized("order", Action.READ, ["orders.read", "order.readonly"]) is False


def test_parse_permission():
    assert parse_permission("order.read") == ("order", Action.READ)
    assert parse_permission("line.item.GLOBAL") == ("line.item", Action.GLOBAL)


@pytest.mark.parametrize("value", ["order", ".read", "order.delete", "order."])
def test_parse_permission_rejects_bad_values(value):
    with pytest.raises(ValueError):
        parse_permission(value)
