"""
Replacement Negotiation
=======================

When an ordered item is out of stock, staff can propose a substitute.

Two flows:
----------
1. **Suggest (ask the customer)**: the suggestion is stored on the item as a
   pending replacement and the customer gets an SMS asking YES or NO. The
   order's totals do not change until the customer approves.

2. **Apply immediately (admin action)**: staff swap the item themselves.
   The replacement is approved on the spot, the line is re-priced and the
   totals are recomputed in the same write.

Customer Replies:
-----------------
handle_inbound_sms() is called by the SMS webhook. It finds the customer's
most recent pending/confirmed order, picks the first item with a pending
replacement and classifies the reply:

- approval: the substitute is accepted and the line re-priced
- rejection: the item is removed; an order left empty is cancelled
- anything else: the text is folded into the store notes for staff

The returned string is the reply sent back in the TwiML response.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..errors import OrderNotFoundError, OrderValidationError, ProductNotFoundError
from ..models import Product
from ..schemas.orders import (
    CommunicationChannel,
    CommunicationDirection,
    DeliveryStatus,
    Order,
    OrderItem,
    OrderStatus,
    ReplacementSuggestion,
)
from ..sms import IncomingSms
from .catalog import ProductCatalog
from .events import EventKind, OrderEvent
from .lifecycle import append_note, assert_transition
from .messaging import (
    MessageKind,
    ReplyIntent,
    classify_inbound,
    new_communication,
    render_message,
)
from .notifier import OrderNotifier
from .order_store import OrderStore, utc_now
from .pricing import line_total, recompute_totals, reprice_item

logger = logging.getLogger(__name__)

NEGOTIABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def first_pending_replacement(order: Order) -> Optional[int]:
    """Index of the first item awaiting the customer's answer, or None."""
    for index, item in enumerate(order.items):
        if item.has_pending_replacement:
            return index
    return None


class ReplacementNegotiation:
    def __init__(
        self,
        store: OrderStore,
        notifier: OrderNotifier,
        catalog: ProductCatalog,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.notifier = notifier
        self.catalog = catalog
        self.clock = clock

    # ------------------------------------------------------------------
    # Staff side
    # ------------------------------------------------------------------

    def _replaceable_item(self, order: Order, item_index: int) -> OrderItem:
        if order.status not in NEGOTIABLE_STATUSES:
            raise OrderValidationError(
                "Replacements can only be suggested for pending or confirmed orders"
            )
        if item_index is None or not 0 <= item_index < len(order.items):
            raise OrderValidationError("Invalid item index")
        item = order.items[item_index]
        if item.was_replaced:
            raise OrderValidationError("Item has already been replaced")
        return item

    def _resolve_product(self, product_id: str) -> Product:
        if not product_id:
            raise OrderValidationError("Replacement product is required")
        product = self.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _suggestion(
        self,
        item: OrderItem,
        product: Product,
        staff: Optional[str],
        note: Optional[str],
        now: datetime,
    ) -> ReplacementSuggestion:
        return ReplacementSuggestion(
            product_id=product.id,
            product_name=product.name,
            price_per_unit=product.price,
            proposed_total_price=line_total(item.quantity, product.price),
            note=(note or "").strip() or None,
            suggested_by=staff,
            suggested_at=now,
        )

    def suggest(
        self,
        order_id: str,
        item_index: int,
        product_id: str,
        staff: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Order:
        """
        Propose a substitute and ask the customer by SMS.

        Totals are unchanged; `proposed_total_price` shows what the line
        would cost if the customer says YES.

        Raises:
            OrderNotFoundError: No such order
            ProductNotFoundError: Unknown or inactive replacement product
            OrderValidationError: Wrong status, bad index or item already replaced
        """
        product = self._resolve_product(product_id)
        now = self.clock()

        def mutator(order: Order) -> Dict:
            item = self._replaceable_item(order, item_index)
            items = list(order.items)
            items[item_index] = item.model_copy(update={
                "replacement": self._suggestion(item, product, staff, note, now),
            })
            return {"items": items}

        order = self.store.mutate(order_id, mutator)
        if order is None:
            raise OrderNotFoundError(order_id)

        logger.info(
            "Replacement suggested on order %s item %d: %s",
            order.order_number, item_index, product.name,
        )
        return self.notifier.publish(
            order,
            [OrderEvent(EventKind.REPLACEMENT_SUGGESTED, {"item_index": item_index})],
        )

    def apply_immediately(
        self,
        order_id: str,
        item_index: int,
        product_id: str,
        staff: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Order:
        """Swap an item on the customer's behalf and recompute totals."""
        product = self._resolve_product(product_id)
        now = self.clock()

        def mutator(order: Order) -> Dict:
            item = self._replaceable_item(order, item_index)
            suggestion = self._suggestion(item, product, staff, note, now)
            suggestion.approved_at = now

            items = list(order.items)
            items[item_index] = reprice_item(item.model_copy(update={
                "replacement": suggestion,
                "was_replaced": True,
            }))
            return {"items": items, **recompute_totals(items).as_fields()}

        order = self.store.mutate(order_id, mutator)
        if order is None:
            raise OrderNotFoundError(order_id)

        logger.info(
            "Replacement applied on order %s item %d: %s (new total $%.2f)",
            order.order_number, item_index, product.name, order.total,
        )
        return self.notifier.publish(
            order,
            [OrderEvent(EventKind.REPLACEMENT_APPLIED, {"item_index": item_index})],
        )

    # ------------------------------------------------------------------
    # Customer side
    # ------------------------------------------------------------------

    def handle_inbound_sms(self, incoming: IncomingSms) -> str:
        """
        Apply a customer's text to their most recent negotiable order.

        Returns:
            The reply text for the TwiML response
        """
        logger.debug("Inbound SMS from %s: %s", incoming.from_number, incoming.body)

        candidates = [
            order for order in self.store.get_by_phone(incoming.from_number)
            if order.status in NEGOTIABLE_STATUSES
        ]
        if not candidates:
            return render_message(MessageKind.NO_PENDING_ORDER)

        now = self.clock()
        intent = classify_inbound(incoming.body)
        result: Dict[str, str] = {}

        def mutator(order: Order) -> Optional[Dict]:
            if order.status not in NEGOTIABLE_STATUSES:
                result["reply"] = render_message(MessageKind.NO_PENDING_ORDER)
                return None

            inbound = new_communication(
                CommunicationDirection.FROM_CUSTOMER,
                CommunicationChannel.SMS,
                incoming.body,
                now,
                status=DeliveryStatus.DELIVERED,
                external_id=incoming.message_sid or None,
            )
            index = first_pending_replacement(order)

            if index is None or intent == ReplyIntent.UNRECOGNIZED:
                result["outcome"] = "noted"
                result["reply"] = render_message(MessageKind.ACKNOWLEDGEMENT, order)
                return {
                    "communications": order.communications + [inbound],
                    "store_notes": append_note(
                        order.store_notes, f"[SMS from customer]: {incoming.body}"
                    ),
                }

            item = order.items[index]
            items: List[OrderItem] = list(order.items)
            fields: Dict = {}

            if intent == ReplyIntent.APPROVAL:
                items[index] = reprice_item(item.model_copy(update={
                    "was_replaced": True,
                    "replacement": item.replacement.model_copy(update={"approved_at": now}),
                }))
                totals = recompute_totals(items)
                result["outcome"] = "approved"
                result["reply"] = render_message(
                    MessageKind.REPLACEMENT_APPROVED,
                    order,
                    replacement_name=item.replacement.product_name,
                )
            else:
                del items[index]
                totals = recompute_totals(items)
                if items:
                    result["outcome"] = "rejected"
                    result["reply"] = render_message(
                        MessageKind.REPLACEMENT_REJECTED,
                        order.model_copy(update=totals.as_fields()),
                        product_name=item.product_name,
                    )
                else:
                    assert_transition(order.status, OrderStatus.CANCELLED)
                    result["outcome"] = "emptied"
                    result["reply"] = render_message(
                        MessageKind.ORDER_EMPTIED, order, product_name=item.product_name
                    )
                    fields["status"] = OrderStatus.CANCELLED
                    fields["timeline"] = order.timeline.model_copy(
                        update={"cancelled_at": now}
                    )

            outbound = new_communication(
                CommunicationDirection.TO_CUSTOMER,
                CommunicationChannel.SMS,
                result["reply"],
                now,
            )
            fields.update({
                "items": items,
                "communications": order.communications + [inbound, outbound],
                **totals.as_fields(),
            })
            return fields

        order = self.store.mutate(candidates[0].id, mutator)
        if order is None:
            return render_message(MessageKind.NO_PENDING_ORDER)

        logger.info(
            "Customer reply on order %s: %s",
            order.order_number, result.get("outcome", "no pending order"),
        )
        return result["reply"]
