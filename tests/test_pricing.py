"""
Tests for order pricing.
"""
from datetime import datetime, timezone

import pytest

from pickup_orders import config
from pickup_orders.schemas.orders import OrderItem, ReplacementSuggestion
from pickup_orders.services.pricing import (
    line_total,
    recompute_totals,
    reprice_item,
)


def _item(product_id, price, quantity):
    return OrderItem(
        product_id=product_id,
        product_name=product_id.title(),
        category="pipes",
        quantity=quantity,
        price_per_unit=price,
        total_price=line_total(quantity, price),
    )


def test_line_total_rounds_to_cents():
    assert line_total(3, 4.99) == 14.97


def test_recompute_totals_applies_austin_tax():
    totals = recompute_totals([_item("a", 10.00, 2)])
    assert totals.subtotal == 20.00
    assert totals.tax == 1.65
    assert totals.total == 21.65


def test_recompute_totals_empty_order():
    totals = recompute_totals([])
    assert (totals.subtotal, totals.tax, totals.total) == (0, 0, 0)


@pytest.mark.parametrize("items", [
    [("a", 10.00, 2), ("b", 15.00, 1)],
    [("a", 2.99, 7)],
    [("a", 0.01, 1), ("b", 149.99, 3), ("c", 12.50, 2)],
])
def test_totals_are_consistent(items):
    totals = recompute_totals([_item(*line) for line in items])
    assert totals.tax == round(totals.subtotal * config.TAX_RATE, 2)
    assert totals.total == round(totals.subtotal + totals.tax, 2)


def test_as_fields():
    totals = recompute_totals([_item("a", 10.00, 2)])
    assert totals.as_fields() == {"subtotal": 20.00, "tax": 1.65, "total": 21.65}


def test_reprice_item_uses_replacement_price_once_approved():
    item = _item("a", 10.00, 2)
    replacement = ReplacementSuggestion(
        product_id="c",
        product_name="C",
        price_per_unit=12.50,
        proposed_total_price=25.00,
        suggested_at=datetime(2026, 10, 19, tzinfo=timezone.utc),
    )

    pending = reprice_item(item.model_copy(update={"replacement": replacement}))
    assert pending.total_price == 20.00

    approved = reprice_item(item.model_copy(update={
        "replacement": replacement,
        "was_replaced": True,
    }))
    assert approved.total_price == 25.00
    assert approved.price_per_unit == 10.00
