from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

Amount = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(value: Optional[Amount]) -> Decimal:
    """Decimal from API floats without binary float artifacts."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Amount) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    gst_amount: Decimal
    total_amount: Decimal
    outstanding_amount: Decimal


# PUBLIC_INTERFACE
def compute_order_totals(
    subtotal: Amount,
    gst_rate: Amount,
    gst_included: bool,
    discount_amount: Amount,
    paid_amount: Amount,
) -> OrderTotals:
    """
    Derive the monetary fields of an order.

        gst_amount = subtotal * gst_rate / 100 when gst_included, else 0
        total_amount = subtotal + gst_amount - discount_amount
        outstanding_amount = total_amount - paid_amount

    Amounts are rounded half-up to cents. Pure and idempotent.
    """
    sub = money(subtotal)
    gst = money(sub * to_decimal(gst_rate) / Decimal(100)) if gst_included else money(0)
    total = money(sub + gst - to_decimal(discount_amount))
    outstanding = money(total - to_decimal(paid_amount))
    return OrderTotals(subtotal=sub, gst_amount=gst, total_amount=total, outstanding_amount=outstanding)


def line_total(quantity: Amount, unit_price: Amount, override: Optional[Amount] = None) -> Decimal:
    """quantity * unit_price unless an explicit total was supplied."""
    if override is not None:
        return money(override)
    return money(to_decimal(quantity) * to_decimal(unit_price))


def sum_lines(totals: Iterable[Amount]) -> Decimal:
    return money(sum((to_decimal(t) for t in totals), Decimal("0")))


def weighted_rating(current: Amount, total_orders: int, this_rating: Amount) -> Decimal:
    """
    Running supplier rating: (current * total_orders + this_rating) / (total_orders + 1),
    rounded half-up to one decimal.
    """
    n = max(int(total_orders), 0)
    value = (to_decimal(current) * n + to_decimal(this_rating)) / Decimal(n + 1)
    return value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
