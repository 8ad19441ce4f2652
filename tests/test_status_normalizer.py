import pytest

from services.status_normalizer import OrderStatus, is_terminal, normalize_status


@pytest.mark.parametrize("raw,expected", [
    ("pending", OrderStatus.PENDING),
    ("Processing", OrderStatus.PROCESSING),
    ("SHIPPED", OrderStatus.SHIPPED),
    ("delivered", OrderStatus.DELIVERED),
    ("cancelled", OrderStatus.CANCELLED),
    ("in transit", OrderStatus.PENDING),
    ("canceled", OrderStatus.PENDING),
    ("", OrderStatus.PENDING),
    (None, OrderStatus.PENDING),
])
def test_normalize_status(raw, expected):
    assert normalize_status(raw) is expected


def test_status_value_is_label():
    assert str(OrderStatus.SHIPPED) == "Shipped"
    assert OrderStatus.SHIPPED == "Shipped"


def test_terminal_statuses():
    assert is_terminal("Delivered")
    assert is_terminal("cancelled")
    assert not is_terminal("Shipped")
