"""
Order Store for Pickup Orders
=============================

Persistence for pickup orders on top of SQLAlchemy. Services never touch
OrderRecord rows directly; they work with the Order schema returned here.

Key Operations:
---------------
- create: assign id, order number and timestamps to a draft
- get_by_id / get_by_number / get_by_phone: lookups (None / [] when missing)
- list: filtered listing for the staff dashboard and the sweeper
- update: merge partial fields, refresh updated_at, bump version
- mutate: read-modify-write with optimistic concurrency and bounded retry
- stats: dashboard counters

Concurrency:
------------
Each order row carries a `version`. update() refuses to write when the
caller's expected version is stale, and the SQLAlchemy mapper re-checks the
version in the UPDATE statement itself, so two requests racing on the same
order cannot silently overwrite each other. mutate() re-reads and re-applies
the caller's change a few times before giving up with
ConcurrentModificationError.

Failures:
---------
Not-found is a normal outcome (None). Backend failures raise
PersistenceError so they are never mistaken for "no such order".
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import config
from ..errors import ConcurrentModificationError, PersistenceError
from ..models import OrderRecord
from ..schemas.orders import (
    Order,
    OrderDraft,
    OrderFilters,
    OrderStats,
    OrderStatus,
    StatusCounts,
)
from ..sms import normalize_phone_number


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "customer_name",
    "customer_phone",
    "customer_email",
    "notification_method",
    "items",
    "subtotal",
    "tax",
    "total",
    "store_location",
    "status",
    "timeline",
    "communications",
    "customer_notes",
    "store_notes",
})

# Concurrent creates can pick the same next sequence; the unique constraint
# rejects the loser, which retries with a fresh number.
ORDER_NUMBER_ATTEMPTS = 5

Mutator = Callable[[Order], Optional[Dict[str, Any]]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime. Naive values are assumed to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_order_number(sequence: int) -> str:
    return f"{config.ORDER_NUMBER_PREFIX}-{sequence:0{config.ORDER_NUMBER_DIGITS}d}"


def _to_column_value(value: Any) -> Any:
    """Convert schema values into what the JSON/scalar columns store."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_to_column_value(v) for v in value]
    return value


class OrderStore:
    """Order persistence bound to one SQLAlchemy session."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _to_order(self, record: OrderRecord) -> Order:
        return Order.model_validate({
            "id": record.id,
            "order_number": record.order_number,
            "customer_name": record.customer_name,
            "customer_phone": record.customer_phone or "",
            "customer_email": record.customer_email,
            "notification_method": record.notification_method,
            "items": record.items or [],
            "subtotal": record.subtotal,
            "tax": record.tax,
            "total": record.total,
            "store_location": record.store_location,
            "status": record.status,
            "timeline": record.timeline or {},
            "communications": record.communications or [],
            "customer_notes": record.customer_notes,
            "store_notes": record.store_notes,
            "created_at": as_utc(record.created_at),
            "updated_at": as_utc(record.updated_at),
            "version": record.version,
        })

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _next_sequence(self) -> int:
        current = self.db.query(func.max(OrderRecord.sequence)).scalar()
        return (current or 0) + 1

    def create(self, draft: OrderDraft) -> Order:
        """
        Persist a new order.

        Args:
            draft: Validated order contents (items, totals, contact, timeline)

        Returns:
            The stored Order with id, order_number, created_at/updated_at

        Raises:
            PersistenceError: If the backend fails or no order number could
                be allocated.
        """
        now = self.clock()
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            try:
                sequence = self._next_sequence()
                record = OrderRecord(
                    id=str(uuid.uuid4()),
                    sequence=sequence,
                    order_number=format_order_number(sequence),
                    created_at=now,
                    updated_at=now,
                    **{
                        name: _to_column_value(getattr(draft, name))
                        for name in UPDATABLE_FIELDS
                    },
                )
                self.db.add(record)
                self.db.commit()
                self.db.refresh(record)
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    "Order number collision on attempt %d, retrying", attempt
                )
                continue
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceError(f"Failed to create order: {e}") from e

            logger.info("Order %s created (%s)", record.order_number, record.id)
            return self._to_order(record)

        raise PersistenceError("Could not allocate a unique order number")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, order_id: str) -> Optional[Order]:
        try:
            record = self.db.get(OrderRecord, order_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to read order: {e}") from e
        return self._to_order(record) if record else None

    def get_by_number(self, order_number: str) -> Optional[Order]:
        """Look up by customer-facing number; case and surrounding space are ignored."""
        normalized = (order_number or "").strip().upper()
        if not normalized:
            return None
        try:
            record = (
                self.db.query(OrderRecord)
                .filter(OrderRecord.order_number == normalized)
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to read order: {e}") from e
        return self._to_order(record) if record else None

    def get_by_phone(self, phone: str) -> List[Order]:
        """All orders for a phone number, newest first. Formatting is ignored."""
        normalized = normalize_phone_number(phone or "")
        if not normalized:
            return []
        try:
            records = (
                self.db.query(OrderRecord)
                .filter(OrderRecord.customer_phone == normalized)
                .order_by(OrderRecord.created_at.desc(), OrderRecord.order_number.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to read orders: {e}") from e
        return [self._to_order(r) for r in records]

    def list(self, filters: Optional[OrderFilters] = None) -> List[Order]:
        """
        Return orders matching the filters, newest first.

        Args:
            filters: Optional status set, location, created_at range
                (inclusive), free-text search over order number, customer
                name and phone, and `since` (created strictly after).
        """
        query = self.db.query(OrderRecord)
        filters = filters or OrderFilters()

        if filters.statuses:
            query = query.filter(
                OrderRecord.status.in_([s.value for s in filters.statuses])
            )
        if filters.store_location:
            query = query.filter(
                OrderRecord.store_location == filters.store_location.value
            )
        if filters.date_from:
            query = query.filter(OrderRecord.created_at >= as_utc(filters.date_from))
        if filters.date_to:
            query = query.filter(OrderRecord.created_at <= as_utc(filters.date_to))
        if filters.since:
            query = query.filter(OrderRecord.created_at > as_utc(filters.since))
        if filters.search and filters.search.strip():
            term = filters.search.strip().lower()
            conditions = [
                func.lower(OrderRecord.order_number).contains(term),
                func.lower(OrderRecord.customer_name).contains(term),
                OrderRecord.customer_phone.contains(term),
            ]
            digits = re.sub(r"\D", "", term)
            if digits and digits != term:
                conditions.append(OrderRecord.customer_phone.contains(digits))
            query = query.filter(or_(*conditions))

        try:
            records = query.order_by(
                OrderRecord.created_at.desc(), OrderRecord.order_number.desc()
            ).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to list orders: {e}") from e
        return [self._to_order(r) for r in records]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        order_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Order]:
        """
        Merge partial fields into an order.

        The caller is responsible for keeping derived totals consistent
        (see services.pricing.recompute_totals) before calling.

        Args:
            order_id: Internal order id
            fields: Field name -> new value (schema objects are accepted)
            expected_version: If given, the write only happens when the
                stored version still matches

        Returns:
            The updated Order, or None if there is no such order

        Raises:
            ValueError: Unknown field name
            ConcurrentModificationError: Stored version differs
            PersistenceError: Backend failure
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        try:
            record = self.db.get(OrderRecord, order_id)
            if record is None:
                return None
            if expected_version is not None and record.version != expected_version:
                self.db.rollback()
                raise ConcurrentModificationError(order_id)

            for name, value in fields.items():
                setattr(record, name, _to_column_value(value))
            record.updated_at = self.clock()
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConcurrentModificationError(order_id) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update order: {e}") from e

        return self._to_order(record)

    def mutate(
        self,
        order_id: str,
        mutator: Mutator,
        attempts: int = 3,
    ) -> Optional[Order]:
        """
        Read-modify-write an order with optimistic concurrency.

        mutator receives a fresh copy of the order and returns the fields to
        write (or None/{} for no change). It may raise to abort; nothing is
        written in that case. On a version conflict the order is re-read and
        mutator is called again, up to `attempts` times.

        Returns:
            The order after the write, or None if there is no such order
        """
        for attempt in range(1, attempts + 1):
            order = self.get_by_id(order_id)
            if order is None:
                return None

            changes = mutator(order)
            if not changes:
                return order

            try:
                return self.update(order_id, changes, expected_version=order.version)
            except ConcurrentModificationError:
                if attempt == attempts:
                    logger.warning(
                        "Giving up on order %s after %d conflicting writes",
                        order.order_number, attempts,
                    )
                    raise
                logger.info(
                    "Order %s changed concurrently, retrying (attempt %d)",
                    order.order_number, attempt,
                )
        return None

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self, now: Optional[datetime] = None) -> OrderStats:
        """Counts for the dashboard: today (store-local), last 7 days, per location."""
        now = as_utc(now or self.clock())
        local_now = now.astimezone(ZoneInfo(config.STORE_TIMEZONE))
        today_start = local_now.replace(
            hour=0, minute=0, second=0, microsecond=0
        ).astimezone(timezone.utc)
        week_start = now - timedelta(days=7)

        try:
            rows = self.db.query(
                OrderRecord.status,
                OrderRecord.store_location,
                OrderRecord.created_at,
            ).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to compute order stats: {e}") from e

        today = StatusCounts()
        this_week = StatusCounts()
        by_location = {location: 0 for location in config.STORE_LOCATIONS}

        for status, location, created_at in rows:
            created_at = as_utc(created_at)
            by_location[location] = by_location.get(location, 0) + 1
            if created_at >= week_start:
                _count(this_week, status)
            if created_at >= today_start:
                _count(today, status)

        return OrderStats(today=today, this_week=this_week, by_location=by_location)


def _count(counts: StatusCounts, status: str) -> None:
    counts.total += 1
    attr = OrderStatus(status).name.lower()
    setattr(counts, attr, getattr(counts, attr) + 1)
