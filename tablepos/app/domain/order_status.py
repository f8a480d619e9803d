"""Order status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum

from ..errors import AlreadyCompleted, InvalidTransition


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    ACTIVE = "active"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"


class OrderType(str, Enum):
    """Dine-in orders occupy a table; takeaway orders carry a number."""

    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


class TableStatus(str, Enum):
    FREE = "free"
    OCCUPIED = "occupied"


TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.ACTIVE: [OrderStatus.COMPLETED],
    OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.COMPLETED],
    OrderStatus.READY: [OrderStatus.COMPLETED],
    OrderStatus.COMPLETED: [],
}

# Every state an order can be in before it is billed or removed.
OPEN_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.ACTIVE,
    OrderStatus.PREPARING,
    OrderStatus.READY,
)

INITIAL_STATUS: dict[OrderType, OrderStatus] = {
    OrderType.DINE_IN: OrderStatus.ACTIVE,
    OrderType.TAKEAWAY: OrderStatus.PREPARING,
}


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


def can_delete(src: OrderStatus) -> bool:
    """Completed orders are history and cannot be removed."""

    return src in OPEN_STATUSES


def ensure_transition(src: OrderStatus | str, dst: OrderStatus | str) -> None:
    """Raise unless ``src`` may move to ``dst``.

    Completing an order twice raises :class:`AlreadyCompleted`; every other
    forbidden move raises :class:`InvalidTransition`.
    """

    src = OrderStatus(src)
    try:
        dst = OrderStatus(dst)
    except ValueError as exc:
        raise InvalidTransition(f"unknown order status {dst!r}") from exc
    if src is OrderStatus.COMPLETED and dst is OrderStatus.COMPLETED:
        raise AlreadyCompleted("order is already completed")
    if not can_transition(src, dst):
        raise InvalidTransition(
            f"cannot move order from {src.value} to {dst.value}",
            current=src.value,
            requested=dst.value,
        )
