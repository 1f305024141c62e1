"""
Tests for message rendering and the messaging gateway.
"""
from datetime import timedelta

import pytest

from pickup_orders import config
from pickup_orders.errors import NotificationError
from pickup_orders.schemas.orders import (
    CommunicationChannel,
    CommunicationDirection,
    NotificationMethod,
)
from pickup_orders.services.messaging import (
    MessageKind,
    format_store_time,
    render_message,
)

from conftest import START, STORE_PHONE


@pytest.fixture
def order(store, make_request, lifecycle):
    return lifecycle.place_order(make_request())


def test_format_store_time_uses_central_time():
    # 17:00 UTC is noon in Austin during daylight saving time
    assert format_store_time(START) == "12:00 PM"
    assert format_store_time(START + timedelta(hours=1, minutes=5)) == "1:05 PM"


def test_render_confirmation(order):
    text = render_message(MessageKind.ORDER_CONFIRMATION, order)
    assert text.startswith(f"Z SMOKE SHOP: Order {order.order_number} received!")
    assert "(est. 12:30 PM)" in text
    assert "719 W William Cannon Dr #105" in text


def test_render_store_notification(order):
    text = render_message(MessageKind.STORE_NOTIFICATION, order)
    assert text == (
        f"NEW ORDER {order.order_number}: Jordan Rivera - 2 item(s) - $21.65. "
        "Check admin dashboard to confirm."
    )


def test_render_ready_for_pickup(lifecycle, order):
    ready = lifecycle.mark_ready(order.id)
    text = render_message(MessageKind.READY_FOR_PICKUP, ready)
    assert "is READY for pickup! Please arrive by 1:00 PM (within 1 hour)" in text


def test_render_cancellation_with_and_without_reason(order):
    with_reason = render_message(MessageKind.CANCELLATION, order, reason="Out of stock")
    assert "has been cancelled. Reason: Out of stock." in with_reason
    assert "Reason" not in render_message(MessageKind.CANCELLATION, order)


def test_render_no_pending_order_needs_no_order():
    text = render_message(MessageKind.NO_PENDING_ORDER)
    assert "couldn't find any pending orders" in text


def test_render_requires_order_for_order_messages():
    with pytest.raises(ValueError):
        render_message(MessageKind.NO_SHOW)


class TestGateway:

    def test_store_notification_goes_to_store_phone(self, gateway, sms_provider, order):
        sms_provider.sent.clear()
        communication = gateway.send(MessageKind.STORE_NOTIFICATION, order)

        assert sms_provider.sent[0][0] == STORE_PHONE
        assert communication.direction == CommunicationDirection.TO_STORE
        assert communication.external_id is not None

    def test_store_notification_without_store_phone(self, gateway, order, monkeypatch):
        monkeypatch.setitem(config.STORE_LOCATIONS["william-cannon"], "phone", "")
        with pytest.raises(NotificationError):
            gateway.send(MessageKind.STORE_NOTIFICATION, order)

    def test_customer_sms(self, gateway, sms_provider, order):
        sms_provider.sent.clear()
        communication = gateway.send(MessageKind.CANCELLATION, order)

        assert sms_provider.messages_to(order.customer_phone)
        assert communication.direction == CommunicationDirection.TO_CUSTOMER
        assert communication.channel == CommunicationChannel.SMS

    def test_email_customers_get_email(self, gateway, sms_provider, email_sender, order):
        email_order = order.model_copy(update={
            "notification_method": NotificationMethod.EMAIL,
            "customer_email": "jordan@example.com",
        })
        sms_provider.sent.clear()

        communication = gateway.send(MessageKind.ORDER_CONFIRMATION, email_order)

        assert communication.channel == CommunicationChannel.EMAIL
        assert sms_provider.sent == []
        sent = email_sender.sent[-1]
        assert sent["to"] == "jordan@example.com"
        assert sent["subject"] == f"Order {order.order_number} Confirmed - Z SMOKE SHOP"
        assert "Glass Hand Pipe" in sent["body"]
        assert sent["html"] is not None

    def test_replacement_messages_prefer_sms(self, gateway, negotiation, order):
        email_order = order.model_copy(update={
            "notification_method": NotificationMethod.EMAIL,
            "customer_email": "jordan@example.com",
        })
        assert gateway.channel_for(
            MessageKind.REPLACEMENT_SUGGESTION, email_order
        ) == CommunicationChannel.SMS
        assert gateway.channel_for(
            MessageKind.READY_FOR_PICKUP, email_order
        ) == CommunicationChannel.EMAIL

    def test_sms_without_phone_fails(self, gateway, order):
        no_phone = order.model_copy(update={"customer_phone": ""})
        with pytest.raises(NotificationError):
            gateway.send(MessageKind.NO_SHOW, no_phone)
