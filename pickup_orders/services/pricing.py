"""
Order pricing utilities.

Every code path that changes an order's items (placing the order, approving
or applying a replacement, removing a rejected item) goes through
recompute_totals so subtotal, tax and total can never drift apart.
"""

from dataclasses import dataclass
from typing import Iterable

from .. import config
from ..schemas.orders import OrderItem


def round_money(amount: float) -> float:
    """Round to 2 decimal places for currency."""
    return round(amount, 2)


def line_total(quantity: int, price_per_unit: float) -> float:
    return round_money(quantity * price_per_unit)


@dataclass(frozen=True)
class Totals:
    """Derived money fields of an order."""

    subtotal: float
    tax: float
    total: float

    def as_fields(self) -> dict:
        return {"subtotal": self.subtotal, "tax": self.tax, "total": self.total}


def calculate_tax(subtotal: float) -> float:
    return round_money(subtotal * config.TAX_RATE)


def recompute_totals(items: Iterable[OrderItem]) -> Totals:
    """
    Calculate subtotal, tax and total from line items.

    Args:
        items: The order's current line items

    Returns:
        Totals with tax = round(subtotal * TAX_RATE, 2) and
        total = round(subtotal + tax, 2)
    """
    subtotal = round_money(sum(item.total_price for item in items))
    tax = calculate_tax(subtotal)
    return Totals(subtotal=subtotal, tax=tax, total=round_money(subtotal + tax))


def reprice_item(item: OrderItem) -> OrderItem:
    """Return a copy of the item with total_price at its effective unit price."""
    return item.model_copy(
        update={"total_price": line_total(item.quantity, item.effective_price_per_unit)}
    )
