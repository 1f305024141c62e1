"""
Order Schemas for Pickup Orders
===============================

This module defines the Pydantic models for pickup orders: the order
aggregate itself (used by the services and returned by the API), its line
items, timeline and communication log, and the request bodies accepted by
the order endpoints.

Order Lifecycle:
----------------
1. **pending**: Order placed online, waiting for staff to check stock
2. **confirmed**: Staff confirmed the items are available
3. **ready**: Bagged at the counter; the 1-hour pickup window starts
4. **picked-up**: Customer collected and paid (terminal)
5. **no-show**: Pickup window passed without collection (terminal)
6. **cancelled**: Rejected by staff, cancelled, or emptied by
   replacement rejections (terminal)

Money:
------
Each line captures the product price at order time (`price_per_unit`), so
later catalog price changes do not alter placed orders. `subtotal`, `tax`
and `total` are derived from the items by services.pricing.recompute_totals
and are never edited directly.

Replacements:
-------------
When an item is out of stock, staff can suggest a substitute. The
suggestion is stored on the item (`replacement`) and stays *pending* until
the customer approves it by SMS (`was_replaced` becomes true) or rejects it
(the item is removed from the order).

Usage:
------
    order = Order.model_validate(record_dict)
    for item in order.items:
        print(f"{item.product_name}: ${item.total_price:.2f}")
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enumerations
# =============================================================================

class OrderStatus(str, Enum):
    """Status of a pickup order."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    READY = "ready"
    PICKED_UP = "picked-up"
    NO_SHOW = "no-show"
    CANCELLED = "cancelled"


class ReplacementPreference(str, Enum):
    """What the customer wants if an item turns out to be unavailable."""
    SUBSTITUTE = "substitute"
    REFUND = "refund"
    CALL_ME = "call-me"


class StoreLocation(str, Enum):
    """The two physical stores."""
    WILLIAM_CANNON = "william-cannon"
    CAMERON_RD = "cameron-rd"


class NotificationMethod(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class CommunicationDirection(str, Enum):
    TO_CUSTOMER = "to-customer"
    TO_STORE = "to-store"
    FROM_CUSTOMER = "from-customer"
    FROM_STORE = "from-store"


class CommunicationChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"
    WEB = "web"
    SYSTEM = "system"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


# =============================================================================
# Order Aggregate
# =============================================================================

class ReplacementSuggestion(BaseModel):
    """
    A staff-proposed substitute for an unavailable line item.

    Attributes:
        product_id: Catalog id of the substitute
        product_name: Substitute name at suggestion time
        price_per_unit: Substitute price at suggestion time
        proposed_total_price: Line total if the substitute is accepted
        note: Optional staff note shown to the customer
        suggested_by: Staff username
        suggested_at: When the suggestion was made
        approved_at: When the customer (or staff, for direct swaps) approved
    """
    product_id: str
    product_name: str
    price_per_unit: float
    proposed_total_price: float
    note: Optional[str] = None
    suggested_by: Optional[str] = None
    suggested_at: datetime
    approved_at: Optional[datetime] = None


class OrderItem(BaseModel):
    """One line of an order."""
    product_id: str
    product_name: str
    product_image: Optional[str] = None
    category: str
    quantity: int = Field(gt=0)
    price_per_unit: float
    total_price: float
    replacement_preference: ReplacementPreference = ReplacementPreference.SUBSTITUTE
    was_replaced: bool = False
    replacement: Optional[ReplacementSuggestion] = None

    @property
    def has_pending_replacement(self) -> bool:
        return self.replacement is not None and not self.was_replaced

    @property
    def effective_price_per_unit(self) -> float:
        if self.was_replaced and self.replacement is not None:
            return self.replacement.price_per_unit
        return self.price_per_unit

    @property
    def display_name(self) -> str:
        if self.was_replaced and self.replacement is not None:
            return self.replacement.product_name
        return self.product_name


class Communication(BaseModel):
    """One message sent or received about an order."""
    id: str
    timestamp: datetime
    direction: CommunicationDirection
    channel: CommunicationChannel
    message: str
    status: Optional[DeliveryStatus] = None
    external_id: Optional[str] = None


class OrderTimeline(BaseModel):
    """Timestamps of the lifecycle transitions actually taken."""
    placed_at: datetime
    confirmed_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    pickup_deadline: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class Order(BaseModel):
    """
    A pickup order as stored and returned by the API.

    `version` increases on every write and is used for optimistic
    concurrency by services.order_store.OrderStore.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    customer_name: str
    customer_phone: str = ""
    customer_email: Optional[str] = None
    notification_method: NotificationMethod
    items: List[OrderItem]
    subtotal: float
    tax: float
    total: float
    store_location: StoreLocation
    status: OrderStatus
    timeline: OrderTimeline
    communications: List[Communication] = Field(default_factory=list)
    customer_notes: Optional[str] = None
    store_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


class OrderDraft(BaseModel):
    """Everything needed to create an order; the store assigns the rest."""
    customer_name: str
    customer_phone: str = ""
    customer_email: Optional[str] = None
    notification_method: NotificationMethod
    items: List[OrderItem]
    subtotal: float
    tax: float
    total: float
    store_location: StoreLocation
    status: OrderStatus = OrderStatus.PENDING
    timeline: OrderTimeline
    communications: List[Communication] = Field(default_factory=list)
    customer_notes: Optional[str] = None
    store_notes: Optional[str] = None


# =============================================================================
# Requests
# =============================================================================

class CreateOrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    replacement_preference: ReplacementPreference = ReplacementPreference.SUBSTITUTE


class CreateOrderRequest(BaseModel):
    """
    Request body for POST /orders.

    Either a phone (for SMS) or an email (for email) is required depending on
    `notification_method`; the lifecycle engine validates the combination.
    """
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    notification_method: NotificationMethod
    items: List[CreateOrderItemRequest]
    store_location: StoreLocation
    customer_notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    store_notes: Optional[str] = None


class SuggestReplacementRequest(BaseModel):
    order_item_index: int
    replacement_product_id: str
    replacement_note: Optional[str] = None


class OrderActionType(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    SUGGEST_REPLACEMENT = "suggest-replacement"


class OrderActionRequest(BaseModel):
    """Request body for the admin actions endpoint."""
    action: OrderActionType
    reason: Optional[str] = None
    product_index: Optional[int] = None
    replacement_product_id: Optional[str] = None
    replacement_note: Optional[str] = None


class OrderFilters(BaseModel):
    """Filters accepted by OrderStore.list()."""
    statuses: Optional[List[OrderStatus]] = None
    store_location: Optional[StoreLocation] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search: Optional[str] = None
    since: Optional[datetime] = None


# =============================================================================
# Responses
# =============================================================================

class OrderResponse(BaseModel):
    success: bool = True
    order: Order
    message: Optional[str] = None


class OrderListItem(BaseModel):
    """Compact row for the staff dashboard."""
    id: str
    order_number: str
    customer_name: str
    customer_phone: str
    status: OrderStatus
    item_count: int
    total: float
    store_location: StoreLocation
    created_at: datetime
    pickup_deadline: Optional[datetime] = None
    time_remaining_minutes: Optional[int] = None
    is_expiring_soon: bool = False


class OrderListResponse(BaseModel):
    success: bool = True
    orders: List[Order] = Field(default_factory=list)
    summaries: Optional[List[OrderListItem]] = None
    count: int


class StatusCounts(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    ready: int = 0
    picked_up: int = 0
    no_show: int = 0
    cancelled: int = 0


class OrderStats(BaseModel):
    """
    Dashboard counters.

    Attributes:
        today: Orders created since midnight, store time
        this_week: Orders created in the last 7 days
        by_location: All-time order count per store location
    """
    today: StatusCounts
    this_week: StatusCounts
    by_location: Dict[str, int]


class OrderStatsResponse(BaseModel):
    stats: OrderStats


class SweepResponse(BaseModel):
    success: bool = True
    timestamp: datetime
    checked: int
    expired: List[str]
    expired_count: int
