"""
Invoice arithmetic

Amounts are integer cents, percentage discounts and tax rates are basis
points (1000 = 10%). Rounding is half away from zero on each step.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

BASIS_POINTS = 10000


def round_cents(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_amount(quantity: float, unit_price: int) -> int:
    return round_cents(Decimal(str(quantity)) * unit_price)


def dollars_to_cents(amount: float) -> int:
    return round_cents(Decimal(str(amount)) * 100)


def calculate_totals(
    line_items: Iterable[tuple[float, int]],
    discount_type: Optional[str] = None,
    discount_value: int = 0,
    tax_rate: int = 0,
    amount_paid: int = 0,
) -> dict[str, int]:
    """
    Compute invoice totals from (quantity, unit_price) pairs.

    >>> calculate_totals([(2, 5000)], "percentage", 1000, 825)["total"]
    9743
    """
    subtotal = sum(line_amount(quantity, unit_price) for quantity, unit_price in line_items)

    if discount_type == "percentage":
        discount = round_cents(Decimal(subtotal) * discount_value / BASIS_POINTS)
    elif discount_type == "fixed":
        discount = discount_value
    else:
        discount = 0
    discount = min(max(discount, 0), subtotal)

    taxable = subtotal - discount
    tax = round_cents(Decimal(taxable) * tax_rate / BASIS_POINTS)
    total = taxable + tax

    return {
        "subtotal": subtotal,
        "discount_amount": discount,
        "tax_amount": tax,
        "total": total,
        "balance_due": total - amount_paid,
    }


def format_cents(amount: int, currency: str = "USD") -> str:
    symbol = "$" if currency in ("USD", "CAD", "AUD") else ""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount) / 100:,.2f}" + ("" if symbol else f" {currency}")
