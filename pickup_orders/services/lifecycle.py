"""
Order Lifecycle Engine
======================

Owns every status change of a pickup order. Each operation validates the
requested transition against TRANSITIONS, writes the new status together
with its timeline stamp in a single store write, and then publishes the
resulting events to the notifier.

Status Flow:
------------
    pending   -> confirmed, ready, cancelled
    confirmed -> confirmed (re-accept), ready, cancelled
    ready     -> picked-up, no-show (pickup window passed), cancelled

picked-up, no-show and cancelled are terminal.

Pickup Window:
--------------
mark_ready() sets `ready_at = now` and `pickup_deadline = now + 60 min`.
expire() only succeeds once `now > pickup_deadline`; the sweeper in
services.expiration calls it for every ready order.

Usage:
------
    engine = LifecycleEngine(store, notifier, catalog)
    order = engine.place_order(request)
    order = engine.accept(order.id)
    order = engine.mark_ready(order.id)
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .. import config
from ..email_service import normalize_email_address
from ..errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    ProductNotFoundError,
)
from ..schemas.orders import (
    CreateOrderRequest,
    NotificationMethod,
    Order,
    OrderDraft,
    OrderItem,
    OrderListItem,
    OrderStatus,
    OrderTimeline,
)
from ..sms import is_valid_phone_number, normalize_phone_number
from .catalog import ProductCatalog
from .events import EventKind, OrderEvent
from .notifier import OrderNotifier
from .order_store import OrderStore, as_utc, utc_now
from .pricing import line_total, recompute_totals

logger = logging.getLogger(__name__)


# =============================================================================
# Transition Table
# =============================================================================

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.CONFIRMED,
        OrderStatus.READY,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED: frozenset({
        OrderStatus.CONFIRMED,
        OrderStatus.READY,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY: frozenset({
        OrderStatus.PICKED_UP,
        OrderStatus.NO_SHOW,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PICKED_UP: frozenset(),
    OrderStatus.NO_SHOW: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in TRANSITIONS[current]


def assert_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Raise InvalidTransitionError unless current -> requested is allowed."""
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value)


# =============================================================================
# Pickup Window Helpers
# =============================================================================

def pickup_deadline_for(ready_at: datetime) -> datetime:
    return ready_at + timedelta(minutes=config.PICKUP_WINDOW_MINUTES)


def effective_pickup_deadline(order: Order) -> Optional[datetime]:
    """The stored deadline, or one derived from ready_at for older records."""
    if order.timeline.pickup_deadline is not None:
        return as_utc(order.timeline.pickup_deadline)
    if order.timeline.ready_at is not None:
        return pickup_deadline_for(as_utc(order.timeline.ready_at))
    return None


def remaining_pickup_time(order: Order, now: datetime) -> Optional[timedelta]:
    """
    Time left to pick up a ready order (never negative).

    Returns None for orders that are not ready.
    """
    if order.status != OrderStatus.READY:
        return None
    deadline = effective_pickup_deadline(order)
    if deadline is None:
        return None
    return max(deadline - as_utc(now), timedelta(0))


def is_expiring_soon(order: Order, now: datetime) -> bool:
    remaining = remaining_pickup_time(order, now)
    if remaining is None:
        return False
    return timedelta(0) < remaining < timedelta(minutes=config.EXPIRING_SOON_MINUTES)


def order_to_list_item(order: Order, now: datetime) -> OrderListItem:
    """Dashboard row with the minutes left on the pickup window."""
    remaining = remaining_pickup_time(order, now)
    return OrderListItem(
        id=order.id,
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        status=order.status,
        item_count=order.item_count,
        total=order.total,
        store_location=order.store_location,
        created_at=order.created_at,
        pickup_deadline=effective_pickup_deadline(order),
        time_remaining_minutes=(
            int(remaining.total_seconds() // 60) if remaining is not None else None
        ),
        is_expiring_soon=is_expiring_soon(order, now),
    )


def append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    """Append a line to store notes; notes are never overwritten."""
    note = (note or "").strip()
    if not note:
        return existing
    if not existing:
        return note
    return f"{existing}\n{note}"


# =============================================================================
# Engine
# =============================================================================

Change = Callable[[Order, datetime], Tuple[Dict, List[OrderEvent]]]


class LifecycleEngine:
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

    def _run(
        self,
        order_id: str,
        change: Change,
        store_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Apply a status change in one write, then notify.

        `change` may be called more than once if the order is modified
        concurrently; it must only compute, never send.
        """
        now = as_utc(now or self.clock())
        events: List[OrderEvent] = []

        def mutator(order: Order) -> Dict:
            fields, emitted = change(order, now)
            if store_notes:
                fields["store_notes"] = append_note(
                    fields.get("store_notes", order.store_notes), store_notes
                )
            events[:] = emitted
            return fields

        updated = self.store.mutate(order_id, mutator)
        if updated is None:
            raise OrderNotFoundError(order_id)

        logger.info("Order %s is now %s", updated.order_number, updated.status.value)
        return self.notifier.publish(updated, events)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def place_order(self, request: CreateOrderRequest) -> Order:
        """
        Validate a customer request and create a pending order.

        Prices are captured from the catalog at this moment. Sends the
        customer confirmation and the store notification.

        Raises:
            OrderValidationError: Missing name/items or unusable contact info
            ProductNotFoundError: An item refers to an unknown product
        """
        if not request.customer_name:
            raise OrderValidationError("Customer name is required")
        if not request.items:
            raise OrderValidationError("Order must contain at least one item")

        phone = ""
        if request.customer_phone:
            if not is_valid_phone_number(request.customer_phone):
                raise OrderValidationError(
                    "Invalid phone number format. Please use a 10-digit US phone number."
                )
            phone = normalize_phone_number(request.customer_phone)

        email = None
        if request.customer_email:
            email = normalize_email_address(request.customer_email)
            if email is None:
                raise OrderValidationError("Invalid email address format")

        if request.notification_method == NotificationMethod.SMS and not phone:
            raise OrderValidationError("Phone number is required for SMS notifications")
        if request.notification_method == NotificationMethod.EMAIL and not email:
            raise OrderValidationError("Email address is required for email notifications")

        items: List[OrderItem] = []
        for requested in request.items:
            product = self.catalog.get_product(requested.product_id)
            if product is None:
                raise ProductNotFoundError(requested.product_id)
            items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_image=product.image,
                category=product.category,
                quantity=requested.quantity,
                price_per_unit=product.price,
                total_price=line_total(requested.quantity, product.price),
                replacement_preference=requested.replacement_preference,
            ))

        totals = recompute_totals(items)
        now = self.clock()
        draft = OrderDraft(
            customer_name=request.customer_name,
            customer_phone=phone,
            customer_email=email,
            notification_method=request.notification_method,
            items=items,
            store_location=request.store_location,
            status=OrderStatus.PENDING,
            timeline=OrderTimeline(placed_at=now),
            customer_notes=(request.customer_notes or "").strip() or None,
            **totals.as_fields(),
        )

        order = self.store.create(draft)
        logger.info(
            "Order %s placed at %s: %d item(s), $%.2f",
            order.order_number, order.store_location.value, order.item_count, order.total,
        )
        return self.notifier.publish(order, [OrderEvent(EventKind.ORDER_PLACED)])

    # ------------------------------------------------------------------
    # Staff Transitions
    # ------------------------------------------------------------------

    def accept(self, order_id: str, store_notes: Optional[str] = None) -> Order:
        """Confirm stock. Re-accepting keeps the first confirmed_at."""
        def change(order: Order, now: datetime):
            assert_transition(order.status, OrderStatus.CONFIRMED)
            timeline = order.timeline.model_copy(
                update={"confirmed_at": order.timeline.confirmed_at or now}
            )
            return (
                {"status": OrderStatus.CONFIRMED, "timeline": timeline},
                [OrderEvent(EventKind.ORDER_CONFIRMED)],
            )

        return self._run(order_id, change, store_notes)

    def mark_ready(self, order_id: str, store_notes: Optional[str] = None) -> Order:
        """Start the pickup window and text the customer the deadline."""
        def change(order: Order, now: datetime):
            assert_transition(order.status, OrderStatus.READY)
            timeline = order.timeline.model_copy(update={
                "ready_at": now,
                "pickup_deadline": pickup_deadline_for(now),
            })
            return (
                {"status": OrderStatus.READY, "timeline": timeline},
                [OrderEvent(EventKind.ORDER_READY)],
            )

        return self._run(order_id, change, store_notes)

    def reject(
        self,
        order_id: str,
        reason: Optional[str] = None,
        staff: Optional[str] = None,
    ) -> Order:
        """Cancel on behalf of the store, recording who rejected it and why."""
        note = f"Rejected by {staff or 'staff'}: {reason or 'No reason given'}"

        def change(order: Order, now: datetime):
            assert_transition(order.status, OrderStatus.CANCELLED)
            timeline = order.timeline.model_copy(update={"cancelled_at": now})
            return (
                {
                    "status": OrderStatus.CANCELLED,
                    "timeline": timeline,
                    "store_notes": append_note(order.store_notes, note),
                },
                [OrderEvent(EventKind.ORDER_CANCELLED, {"reason": reason})],
            )

        return self._run(order_id, change)

    def complete(self, order_id: str, store_notes: Optional[str] = None) -> Order:
        def change(order: Order, now: datetime):
            assert_transition(order.status, OrderStatus.PICKED_UP)
            timeline = order.timeline.model_copy(update={"completed_at": now})
            return (
                {"status": OrderStatus.PICKED_UP, "timeline": timeline},
                [OrderEvent(EventKind.ORDER_COMPLETED)],
            )

        return self._run(order_id, change, store_notes)

    def expire(
        self,
        order_id: str,
        now: Optional[datetime] = None,
        store_notes: Optional[str] = None,
    ) -> Order:
        """
        Mark a ready order as a no-show.

        Raises:
            InvalidTransitionError: The order is not ready
            OrderValidationError: The pickup window has not passed yet
        """
        def change(order: Order, now: datetime):
            assert_transition(order.status, OrderStatus.NO_SHOW)
            deadline = effective_pickup_deadline(order)
            if deadline is None or now <= deadline:
                raise OrderValidationError(
                    f"Order {order.order_number} is still within its pickup window"
                )
            timeline = order.timeline.model_copy(update={
                "pickup_deadline": deadline,
                "completed_at": now,
            })
            note = f"Not picked up by {deadline.isoformat()}, marked as no-show"
            return (
                {
                    "status": OrderStatus.NO_SHOW,
                    "timeline": timeline,
                    "store_notes": append_note(order.store_notes, note),
                },
                [OrderEvent(EventKind.ORDER_NO_SHOW)],
            )

        return self._run(order_id, change, store_notes, now=now)

    def cancel(
        self,
        order_id: str,
        reason: Optional[str] = None,
        store_notes: Optional[str] = None,
    ) -> Order:
        def change(order: Order, now: datetime):
            assert_transition(order.status, OrderStatus.CANCELLED)
            timeline = order.timeline.model_copy(update={"cancelled_at": now})
            return (
                {"status": OrderStatus.CANCELLED, "timeline": timeline},
                [OrderEvent(EventKind.ORDER_CANCELLED, {"reason": reason})],
            )

        return self._run(order_id, change, store_notes)

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        store_notes: Optional[str] = None,
    ) -> Order:
        """Staff status change from the dashboard; store_notes are appended."""
        if status == OrderStatus.CONFIRMED:
            return self.accept(order_id, store_notes)
        if status == OrderStatus.READY:
            return self.mark_ready(order_id, store_notes)
        if status == OrderStatus.PICKED_UP:
            return self.complete(order_id, store_notes)
        if status == OrderStatus.NO_SHOW:
            return self.expire(order_id, store_notes=store_notes)
        if status == OrderStatus.CANCELLED:
            return self.cancel(order_id, reason=store_notes, store_notes=store_notes)

        # Nothing moves back to pending
        order = self.store.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        raise InvalidTransitionError(order.status.value, status.value)
