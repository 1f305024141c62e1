"""
Messaging Gateway for Pickup Orders
===================================

Renders the customer and store messages and dispatches them over SMS or
email. Also classifies inbound customer texts for the replacement protocol.

Message Routing:
----------------
- Store notifications go to the order's store phone (direction `to-store`).
- Replacement messages go by SMS whenever the order has a phone, because
  the customer answers them by replying YES or NO.
- Every other customer message follows `notification_method`: email when
  the customer chose email and gave an address, SMS otherwise.

The webhook auto-replies (no pending order, approved, removed, ...) are
rendered here too, but they are returned to Twilio as TwiML instead of
being sent through a provider.

Usage:
------
    gateway = MessagingGateway(get_sms_provider())
    communication = gateway.send(MessageKind.READY_FOR_PICKUP, order)
"""

import html
import logging
import re
import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .. import config
from ..email_service import build_order_summary, send_order_email
from ..errors import NotificationError
from ..schemas.orders import (
    Communication,
    CommunicationChannel,
    CommunicationDirection,
    DeliveryStatus,
    NotificationMethod,
    Order,
)
from ..sms import BaseSmsProvider, get_sms_provider
from .order_store import utc_now

logger = logging.getLogger(__name__)

EmailSender = Callable[..., Optional[str]]


# =============================================================================
# Templates
# =============================================================================

class MessageKind(str, Enum):
    # Outbound notifications
    ORDER_CONFIRMATION = "order-confirmation"
    STORE_NOTIFICATION = "store-notification"
    READY_FOR_PICKUP = "ready-for-pickup"
    REPLACEMENT_SUGGESTION = "replacement-suggestion"
    REPLACEMENT_APPLIED = "replacement-applied"
    CANCELLATION = "cancellation"
    NO_SHOW = "no-show"

    # Replies to inbound texts
    NO_PENDING_ORDER = "no-pending-order"
    REPLACEMENT_APPROVED = "replacement-approved"
    REPLACEMENT_REJECTED = "replacement-rejected"
    ORDER_EMPTIED = "order-emptied"
    ACKNOWLEDGEMENT = "acknowledgement"
    ERROR_FALLBACK = "error-fallback"


REPLACEMENT_KINDS = frozenset({
    MessageKind.REPLACEMENT_SUGGESTION,
    MessageKind.REPLACEMENT_APPLIED,
})

EMAIL_SUBJECTS = {
    MessageKind.ORDER_CONFIRMATION: "Order {number} Confirmed",
    MessageKind.READY_FOR_PICKUP: "Order {number} Ready for Pickup",
    MessageKind.REPLACEMENT_APPLIED: "Order {number} Updated",
    MessageKind.CANCELLATION: "Order {number} Cancelled",
    MessageKind.NO_SHOW: "Order {number} Not Picked Up",
}


def format_store_time(value: datetime) -> str:
    """Format as a store-local clock time, e.g. "3:45 PM"."""
    local = value.astimezone(ZoneInfo(config.STORE_TIMEZONE))
    return local.strftime("%I:%M %p").lstrip("0")


def _store_address(order: Order) -> str:
    store = config.get_store_info(order.store_location.value)
    return f"{store['address']}, {store['city']}"


def render_message(kind: MessageKind, order: Optional[Order] = None, **params) -> str:
    """
    Render the text of a message.

    Args:
        kind: Which message to render
        order: The order it is about (not needed for NO_PENDING_ORDER and
            ERROR_FALLBACK)
        **params: Template parameters:
            - item_index: line the replacement messages refer to
            - reason: optional cancellation reason
            - product_name: removed product (rejection replies)
            - replacement_name: approved substitute (approval reply)
            - ready_by: estimated ready time (confirmation)

    Returns:
        The message text
    """
    name = config.BUSINESS_NAME

    if kind == MessageKind.NO_PENDING_ORDER:
        return (
            f"Thank you for contacting {name}! We couldn't find any pending "
            "orders for this number. Please call us for assistance."
        )
    if kind == MessageKind.ERROR_FALLBACK:
        return "Sorry, we encountered an error. Please call us for assistance."

    if order is None:
        raise ValueError(f"Message {kind.value} needs an order")
    number = order.order_number

    if kind == MessageKind.ORDER_CONFIRMATION:
        ready_by = params.get("ready_by") or (
            order.created_at + timedelta(minutes=config.ESTIMATED_READY_MINUTES)
        )
        return (
            f"{name}: Order {number} received! We'll prepare your items and text "
            f"you when ready for pickup (est. {format_store_time(ready_by)}). "
            f"Must pick up within 1 hour. {_store_address(order)}"
        )

    if kind == MessageKind.STORE_NOTIFICATION:
        return (
            f"NEW ORDER {number}: {order.customer_name} - {order.item_count} "
            f"item(s) - ${order.total:.2f}. Check admin dashboard to confirm."
        )

    if kind == MessageKind.READY_FOR_PICKUP:
        deadline = order.timeline.pickup_deadline
        return (
            f"{name}: Order {number} is READY for pickup! Please arrive by "
            f"{format_store_time(deadline)} (within 1 hour). "
            f"{_store_address(order)}. Reply HELP if you need assistance."
        )

    if kind == MessageKind.REPLACEMENT_SUGGESTION:
        item = order.items[params["item_index"]]
        text = (
            f"{name} Order {number}: \"{item.product_name}\" is out of stock. "
            f"Can we substitute with \"{item.replacement.product_name}\"? "
            "Reply YES to approve or NO to remove from order."
        )
        if item.replacement.note:
            text += f" Note: {item.replacement.note}"
        return text

    if kind == MessageKind.REPLACEMENT_APPLIED:
        item = order.items[params["item_index"]]
        return (
            f"{name} Order {number}: \"{item.product_name}\" was out of stock, "
            f"so we substituted \"{item.replacement.product_name}\". "
            f"New total: ${order.total:.2f}. Call us if you have questions."
        )

    if kind == MessageKind.CANCELLATION:
        reason = params.get("reason")
        if reason:
            return (
                f"{name}: Order {number} has been cancelled. Reason: {reason}. "
                "Call us if you have questions."
            )
        return f"{name}: Order {number} has been cancelled. Call us if you have questions."

    if kind == MessageKind.NO_SHOW:
        return (
            f"{name}: Order {number} was not picked up within the 1-hour window "
            "and has been cancelled. Please place a new order if still interested."
        )

    if kind == MessageKind.REPLACEMENT_APPROVED:
        return (
            f"Great! We've updated your order {number} with "
            f"{params['replacement_name']}. You'll receive a text when ready for pickup."
        )

    if kind == MessageKind.REPLACEMENT_REJECTED:
        return (
            f"We've removed {params['product_name']} from order {number}. "
            f"New total: ${order.total:.2f}. You'll receive a text when ready."
        )

    if kind == MessageKind.ORDER_EMPTIED:
        return (
            f"We've removed {params['product_name']}. Your order {number} is now "
            "empty and has been cancelled."
        )

    if kind == MessageKind.ACKNOWLEDGEMENT:
        return (
            f"Thanks for your message about order {number}. "
            "Our team will review and respond soon."
        )

    raise ValueError(f"Unknown message kind: {kind}")


# =============================================================================
# Inbound Classification
# =============================================================================

class ReplyIntent(str, Enum):
    APPROVAL = "approval"
    REJECTION = "rejection"
    UNRECOGNIZED = "unrecognized"


APPROVAL_WORDS = frozenset({
    "yes", "y", "yeah", "yep", "ok", "okay", "confirm", "approve", "approved", "sure",
})
REJECTION_WORDS = frozenset({
    "no", "n", "nope", "cancel", "decline", "reject", "remove",
})
NEGATION_WORDS = frozenset({
    "not", "don't", "dont", "never", "can't", "cant", "won't", "wont", "isn't", "isnt",
})
# Words allowed around the answer word ("yes please", "please remove it")
FILLER_WORDS = frozenset({
    "please", "thanks", "thank", "you", "thx", "it", "that", "that's", "is", "fine",
    "works", "go", "ahead", "do", "the", "one", "oh", "hi", "hey", "and",
})


def classify_inbound(body: str) -> ReplyIntent:
    """
    Classify a customer's reply to a replacement suggestion.

    A reply counts only when it is an answer word from one vocabulary plus
    optional filler, case-insensitive. Anything else, including negated
    replies ("not ok", "don't cancel it") and mixed ones ("yes... actually
    no"), is unrecognized and goes to staff as a note.
    """
    text = (body or "").lower().replace("’", "'")
    words = re.findall(r"[a-z']+", text)
    if not words or any(word in NEGATION_WORDS for word in words):
        return ReplyIntent.UNRECOGNIZED

    approves = rejects = False
    for word in words:
        if word in APPROVAL_WORDS:
            approves = True
        elif word in REJECTION_WORDS:
            rejects = True
        elif word not in FILLER_WORDS:
            return ReplyIntent.UNRECOGNIZED

    if approves and not rejects:
        return ReplyIntent.APPROVAL
    if rejects and not approves:
        return ReplyIntent.REJECTION
    return ReplyIntent.UNRECOGNIZED


# =============================================================================
# Gateway
# =============================================================================

def new_communication(
    direction: CommunicationDirection,
    channel: CommunicationChannel,
    message: str,
    timestamp: datetime,
    status: Optional[DeliveryStatus] = DeliveryStatus.SENT,
    external_id: Optional[str] = None,
) -> Communication:
    return Communication(
        id=str(uuid.uuid4()),
        timestamp=timestamp,
        direction=direction,
        channel=channel,
        message=message,
        status=status,
        external_id=external_id,
    )


class MessagingGateway:
    """Sends rendered order messages through an SMS provider or email."""

    def __init__(
        self,
        sms_provider: Optional[BaseSmsProvider] = None,
        email_sender: EmailSender = send_order_email,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sms_provider = sms_provider or get_sms_provider()
        self.email_sender = email_sender
        self.clock = clock

    def channel_for(self, kind: MessageKind, order: Order) -> CommunicationChannel:
        if kind in REPLACEMENT_KINDS and order.customer_phone:
            return CommunicationChannel.SMS
        if order.notification_method == NotificationMethod.EMAIL and order.customer_email:
            return CommunicationChannel.EMAIL
        return CommunicationChannel.SMS

    def send(self, kind: MessageKind, order: Order, **params) -> Communication:
        """
        Render and send one message about an order.

        Returns:
            The Communication to append to the order's log

        Raises:
            NotificationError: No usable destination, or the provider failed
        """
        message = render_message(kind, order, **params)

        if kind == MessageKind.STORE_NOTIFICATION:
            store_phone = config.get_store_info(order.store_location.value)["phone"]
            if not store_phone:
                raise NotificationError(
                    f"No phone number configured for location: {order.store_location.value}"
                )
            external_id = self.sms_provider.send(store_phone, message)
            return new_communication(
                CommunicationDirection.TO_STORE,
                CommunicationChannel.SMS,
                message,
                self.clock(),
                external_id=external_id,
            )

        channel = self.channel_for(kind, order)
        if channel == CommunicationChannel.EMAIL:
            external_id = self._send_email(kind, order, message)
        else:
            if not order.customer_phone:
                raise NotificationError(
                    f"Order {order.order_number} has no phone number"
                )
            external_id = self.sms_provider.send(order.customer_phone, message)

        logger.info("Sent %s for order %s via %s", kind.value, order.order_number, channel.value)
        return new_communication(
            CommunicationDirection.TO_CUSTOMER,
            channel,
            message,
            self.clock(),
            external_id=external_id,
        )

    def _send_email(self, kind: MessageKind, order: Order, message: str) -> Optional[str]:
        template = EMAIL_SUBJECTS.get(kind, "Order {number}")
        subject = f"{template.format(number=order.order_number)} - {config.BUSINESS_NAME}"
        greeting = f"Hi {order.customer_name},"

        if kind == MessageKind.ORDER_CONFIRMATION:
            items_text, items_html = build_order_summary(order)
            body_text = f"{greeting}\n\n{message}\n{items_text}"
            body_html = (
                f"<p>{html.escape(greeting)}</p>"
                f"<p>{html.escape(message)}</p>"
                f"{items_html}"
            )
            return self.email_sender(order.customer_email, subject, body_text, body_html)

        return self.email_sender(order.customer_email, subject, f"{greeting}\n\n{message}")
