"""
Best-effort delivery of order notifications.

A state change is committed before anything is sent. Provider failures and
failures to record the communication log are logged and swallowed here, so
a down SMS provider never turns a successful status change into an error.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from ..errors import ConcurrentModificationError, NotificationError, PersistenceError
from ..schemas.orders import Communication, Order
from .events import EventKind, OrderEvent
from .messaging import MessageKind, MessagingGateway
from .order_store import OrderStore

logger = logging.getLogger(__name__)


EVENT_MESSAGES: Dict[EventKind, Tuple[MessageKind, ...]] = {
    EventKind.ORDER_PLACED: (
        MessageKind.ORDER_CONFIRMATION,
        MessageKind.STORE_NOTIFICATION,
    ),
    EventKind.ORDER_CONFIRMED: (),
    EventKind.ORDER_READY: (MessageKind.READY_FOR_PICKUP,),
    EventKind.ORDER_CANCELLED: (MessageKind.CANCELLATION,),
    EventKind.ORDER_NO_SHOW: (MessageKind.NO_SHOW,),
    EventKind.ORDER_COMPLETED: (),
    EventKind.REPLACEMENT_SUGGESTED: (MessageKind.REPLACEMENT_SUGGESTION,),
    EventKind.REPLACEMENT_APPLIED: (MessageKind.REPLACEMENT_APPLIED,),
}


class OrderNotifier:
    def __init__(self, store: OrderStore, gateway: MessagingGateway):
        self.store = store
        self.gateway = gateway

    def publish(self, order: Order, events: Iterable[OrderEvent]) -> Order:
        """
        Send the messages for each event and record the ones that went out.

        Returns:
            The order with the new communications appended, or the order as
            given if nothing was sent or the log could not be saved
        """
        sent: List[Communication] = []
        for event in events:
            for kind in EVENT_MESSAGES[event.kind]:
                try:
                    sent.append(self.gateway.send(kind, order, **event.params))
                except NotificationError as e:
                    logger.warning(
                        "Failed to send %s (%s) for order %s: %s",
                        kind.value, e.channel, order.order_number, e,
                    )

        if not sent:
            return order

        try:
            updated = self.store.mutate(
                order.id,
                lambda current: {"communications": current.communications + sent},
            )
        except (ConcurrentModificationError, PersistenceError) as e:
            logger.error(
                "Could not record %d communication(s) for order %s: %s",
                len(sent), order.order_number, e,
            )
            return order

        return updated or order
