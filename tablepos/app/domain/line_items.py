"""Normalisation of order line items.

Line totals are always computed here at write time: ``total = price *
quantity`` rounded to two decimals. Whatever ``total`` a client sends for a
line is ignored.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from ..errors import ValidationError

# Half a cent of slack absorbs float noise in client-side sums.
TOTAL_TOLERANCE = 0.005


def _field(line: Any, name: str) -> Any:
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def _amount(value: Any) -> float | None:
    """Return ``value`` rounded to cents, or ``None`` unless finite and positive."""
    try:
        amount = round(float(value), 2)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def _whole(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0 or value != int(value):
        return None
    return int(value)


def normalize_items(
    items: Iterable[Any], total_amount: float | None = None, strict: bool = True
) -> tuple[list[dict], float]:
    """Return ``(lines, total_amount)`` for ``items``.

    Each entry needs ``name``, a positive ``price`` and a positive integer
    ``quantity``. When ``total_amount`` is omitted it is the sum of the line
    totals. When given and ``strict`` is true it must match that sum.
    """

    lines: list[dict] = []
    for index, line in enumerate(items or []):
        name = (_field(line, "name") or "").strip()
        price = _amount(_field(line, "price"))
        quantity = _whole(_field(line, "quantity"))
        if not name:
            raise ValidationError("item name is required", line=index)
        if price is None:
            raise ValidationError("item price must be positive", line=index)
        if quantity is None:
            raise ValidationError(
                "item quantity must be a positive whole number", line=index
            )
        lines.append(
            {
                "name": name,
                "price": price,
                "quantity": quantity,
                "total": round(price * quantity, 2),
            }
        )
    if not lines:
        raise ValidationError("an order needs at least one item")

    computed = round(sum(line["total"] for line in lines), 2)
    if total_amount is None:
        return lines, computed
    declared = _amount(total_amount)
    if declared is None:
        raise ValidationError("total_amount must be a positive amount")
    total_amount = declared
    if strict and abs(total_amount - computed) > TOTAL_TOLERANCE:
        raise ValidationError(
            "total_amount does not match the sum of line totals",
            declared=total_amount,
            computed=computed,
        )
    return lines, total_amount
