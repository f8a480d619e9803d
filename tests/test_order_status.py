import pytest

from tablepos.app.domain import (
    INITIAL_STATUS,
    OrderStatus,
    OrderType,
    can_delete,
    can_transition,
    ensure_transition,
)
from tablepos.app.errors import AlreadyCompleted, InvalidTransition


def test_initial_status_per_order_type():
    assert INITIAL_STATUS[OrderType.DINE_IN] is OrderStatus.ACTIVE
    assert INITIAL_STATUS[OrderType.TAKEAWAY] is OrderStatus.PREPARING


@pytest.mark.parametrize(
    "src,dst",
    [
        (OrderStatus.ACTIVE, OrderStatus.COMPLETED),
        (OrderStatus.PREPARING, OrderStatus.READY),
        (OrderStatus.PREPARING, OrderStatus.COMPLETED),
        (OrderStatus.READY, OrderStatus.COMPLETED),
    ],
)
def test_forward_moves_allowed(src, dst):
    assert can_transition(src, dst)
    ensure_transition(src.value, dst.value)


@pytest.mark.parametrize(
    "src,dst",
    [
        (OrderStatus.READY, OrderStatus.PREPARING),
        (OrderStatus.ACTIVE, OrderStatus.READY),
        (OrderStatus.PREPARING, OrderStatus.PREPARING),
        (OrderStatus.COMPLETED, OrderStatus.ACTIVE),
    ],
)
def test_backward_and_sideways_moves_rejected(src, dst):
    assert not can_transition(src, dst)
    with pytest.raises(InvalidTransition):
        ensure_transition(src, dst)


def test_completing_twice_is_already_completed():
    with pytest.raises(AlreadyCompleted):
        ensure_transition("completed", "completed")


def test_unknown_target_status():
    with pytest.raises(InvalidTransition) as info:
        ensure_transition("preparing", "served")
    assert "served" in info.value.message


def test_only_open_orders_can_be_deleted():
    assert can_delete(OrderStatus.ACTIVE)
    assert can_delete(OrderStatus.READY)
    assert not can_delete(OrderStatus.COMPLETED)
