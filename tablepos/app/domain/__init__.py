"""Domain models and helpers."""

from .line_items import normalize_items
from .order_status import (
    INITIAL_STATUS,
    OPEN_STATUSES,
    TRANSITIONS,
    OrderStatus,
    OrderType,
    PaymentMethod,
    TableStatus,
    can_delete,
    can_transition,
    ensure_transition,
)

__all__ = [
    "OrderStatus",
    "OrderType",
    "PaymentMethod",
    "TableStatus",
    "TRANSITIONS",
    "OPEN_STATUSES",
    "INITIAL_STATUS",
    "can_transition",
    "can_delete",
    "ensure_transition",
    "normalize_items",
]
