"""
Order status normalization.
"""
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    def __str__(self) -> str:
        return self.value


_BY_LABEL = {status.value: status for status in OrderStatus}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def normalize_status(raw: Optional[str]) -> OrderStatus:
    """
    Lowercase, capitalize the first letter, then match the five labels exactly.
    Anything else ("", "unknown", "in transit") is Pending.
    """
    if raw is None:
        return OrderStatus.PENDING
    lowered = str(raw).lower()
    label = lowered[:1].upper() + lowered[1:]
    return _BY_LABEL.get(label, OrderStatus.PENDING)


def is_terminal(status: Optional[str]) -> bool:
    # Informational only: terminal orders can still be edited
    return normalize_status(status) in TERMINAL_STATUSES
