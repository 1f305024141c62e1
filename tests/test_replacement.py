"""
Tests for replacement suggestions and the YES/NO SMS protocol.
"""
import pytest

from pickup_orders.errors import (
    OrderNotFoundError,
    OrderValidationError,
    ProductNotFoundError,
)
from pickup_orders.schemas.orders import (
    CommunicationDirection,
    OrderStatus,
)
from pickup_orders.sms import IncomingSms

from conftest import START, CUSTOMER_PHONE


def _sms(body, from_number="512-555-1234", sid="SM0001"):
    return IncomingSms(
        from_number=from_number,
        to_number="+15125550000",
        body=body,
        message_sid=sid,
    )


@pytest.fixture
def order(lifecycle, make_request):
    """Glass Hand Pipe $10 x2, Herb Grinder $15 x1."""
    return lifecycle.place_order(make_request(items=(("prod-a", 2), ("prod-b", 1))))


# =============================================================================
# Suggest
# =============================================================================

class TestSuggest:

    def test_suggest_leaves_totals_alone(self, negotiation, order, sms_provider):
        updated = negotiation.suggest(order.id, 1, "prod-c", staff="alice", note="Same size")

        item = updated.items[1]
        assert item.has_pending_replacement
        assert not item.was_replaced
        assert item.replacement.product_name == "Glass Spoon Pipe"
        assert item.replacement.price_per_unit == 12.50
        assert item.replacement.proposed_total_price == 12.50
        assert item.replacement.suggested_by == "alice"
        assert item.replacement.suggested_at == START
        assert item.total_price == 15.00
        assert (updated.subtotal, updated.total) == (order.subtotal, order.total)

        text = sms_provider.messages_to(CUSTOMER_PHONE)[-1]
        assert '"Herb Grinder" is out of stock' in text
        assert 'substitute with "Glass Spoon Pipe"' in text
        assert "Reply YES to approve or NO to remove from order." in text

    def test_index_out_of_range(self, negotiation, order):
        with pytest.raises(OrderValidationError):
            negotiation.suggest(order.id, 2, "prod-c")
        with pytest.raises(OrderValidationError):
            negotiation.suggest(order.id, -1, "prod-c")

    def test_unknown_product(self, negotiation, order):
        with pytest.raises(ProductNotFoundError):
            negotiation.suggest(order.id, 0, "nope")

    def test_unknown_order(self, negotiation):
        with pytest.raises(OrderNotFoundError):
            negotiation.suggest("missing", 0, "prod-c")

    def test_only_pending_or_confirmed(self, negotiation, lifecycle, order):
        lifecycle.mark_ready(order.id)
        with pytest.raises(OrderValidationError):
            negotiation.suggest(order.id, 0, "prod-c")

    def test_already_replaced_item(self, negotiation, order):
        negotiation.apply_immediately(order.id, 0, "prod-c")
        with pytest.raises(OrderValidationError):
            negotiation.suggest(order.id, 0, "prod-d")


def test_apply_immediately_recomputes_totals(negotiation, order, sms_provider):
    updated = negotiation.apply_immediately(order.id, 0, "prod-c", staff="alice")

    item = updated.items[0]
    assert item.was_replaced
    assert item.replacement.approved_at == START
    assert item.total_price == 25.00
    assert updated.subtotal == 40.00
    assert updated.tax == 3.30
    assert updated.total == 43.30
    assert "so we substituted" in sms_provider.messages_to(CUSTOMER_PHONE)[-1]


# =============================================================================
# Inbound replies
# =============================================================================

class TestInbound:

    def test_approval_round_trip(self, negotiation, order, store):
        negotiation.suggest(order.id, 0, "prod-c")

        reply = negotiation.handle_inbound_sms(_sms("Yes please"))

        assert reply.startswith(f"Great! We've updated your order {order.order_number}")
        assert "Glass Spoon Pipe" in reply

        updated = store.get_by_id(order.id)
        item = updated.items[0]
        assert item.was_replaced
        assert item.replacement.approved_at == START
        assert item.total_price == 25.00
        assert updated.subtotal == 40.00
        assert updated.total == round(updated.subtotal + updated.tax, 2)
        assert updated.status == OrderStatus.PENDING

        inbound, outbound = updated.communications[-2:]
        assert inbound.direction == CommunicationDirection.FROM_CUSTOMER
        assert inbound.message == "Yes please"
        assert inbound.external_id == "SM0001"
        assert outbound.direction == CommunicationDirection.TO_CUSTOMER
        assert outbound.message == reply

    def test_rejection_removes_item_and_recomputes(self, negotiation, order, store):
        negotiation.suggest(order.id, 1, "prod-c")

        reply = negotiation.handle_inbound_sms(_sms("NO"))

        updated = store.get_by_id(order.id)
        assert [i.product_id for i in updated.items] == ["prod-a"]
        assert (updated.subtotal, updated.tax, updated.total) == (20.00, 1.65, 21.65)
        assert updated.status == OrderStatus.PENDING
        assert reply == (
            f"We've removed Herb Grinder from order {order.order_number}. "
            "New total: $21.65. You'll receive a text when ready."
        )

    def test_rejecting_last_item_cancels(self, negotiation, lifecycle, make_request, store):
        single = lifecycle.place_order(make_request(items=(("prod-b", 1),)))
        negotiation.suggest(single.id, 0, "prod-c")

        reply = negotiation.handle_inbound_sms(_sms("nope"))

        updated = store.get_by_id(single.id)
        assert updated.items == []
        assert updated.status == OrderStatus.CANCELLED
        assert updated.timeline.cancelled_at == START
        assert (updated.subtotal, updated.tax, updated.total) == (0, 0, 0)
        assert "is now empty and has been cancelled" in reply

    def test_first_pending_item_is_answered_first(self, negotiation, order, store):
        negotiation.suggest(order.id, 1, "prod-c")
        negotiation.suggest(order.id, 0, "prod-d")

        negotiation.handle_inbound_sms(_sms("yes"))

        updated = store.get_by_id(order.id)
        assert updated.items[0].was_replaced
        assert updated.items[1].has_pending_replacement

    def test_unrecognized_reply_goes_to_store_notes(self, negotiation, order, store):
        negotiation.suggest(order.id, 0, "prod-c")

        reply = negotiation.handle_inbound_sms(_sms("is it the blue one?"))

        assert reply == (
            f"Thanks for your message about order {order.order_number}. "
            "Our team will review and respond soon."
        )
        updated = store.get_by_id(order.id)
        assert "[SMS from customer]: is it the blue one?" in updated.store_notes
        assert updated.items[0].has_pending_replacement
        assert updated.communications[-1].direction == CommunicationDirection.FROM_CUSTOMER
        assert updated.customer_notes == order.customer_notes

    def test_yes_without_pending_replacement_is_acknowledged(self, negotiation, order, store):
        reply = negotiation.handle_inbound_sms(_sms("YES"))
        assert "Our team will review" in reply
        assert store.get_by_id(order.id).items == order.items

    def test_unknown_number(self, negotiation, order, store):
        reply = negotiation.handle_inbound_sms(_sms("YES", from_number="+19995550000"))

        assert "couldn't find any pending orders" in reply
        assert store.get_by_id(order.id).version == order.version

    def test_orders_past_confirmed_are_not_candidates(self, negotiation, lifecycle, order, store):
        negotiation.suggest(order.id, 0, "prod-c")
        lifecycle.mark_ready(order.id)
        before = store.get_by_id(order.id)

        reply = negotiation.handle_inbound_sms(_sms("YES"))

        assert "couldn't find any pending orders" in reply
        after = store.get_by_id(order.id)
        assert after.version == before.version
        assert after.items[0].has_pending_replacement

    def test_most_recent_order_wins(self, negotiation, lifecycle, make_request, order, clock, store):
        clock.advance(minutes=5)
        newer = lifecycle.place_order(make_request(items=(("prod-b", 1),)))
        negotiation.suggest(order.id, 0, "prod-c")
        negotiation.suggest(newer.id, 0, "prod-c")

        negotiation.handle_inbound_sms(_sms("YES"))

        assert store.get_by_id(newer.id).items[0].was_replaced
        assert store.get_by_id(order.id).items[0].has_pending_replacement
