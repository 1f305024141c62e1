"""
Schemas Package for Pickup Orders
=================================

Pydantic models used for API request validation, response serialization and
as the in-memory shape of an order inside the services.

Schema Organization:
--------------------
- **orders.py**: The order aggregate (items, timeline, communications), the
  request bodies of the order endpoints, and list/stats responses

Naming Conventions:
-------------------
- *Request: Request bodies (e.g., CreateOrderRequest)
- *Response: Response envelopes (e.g., OrderResponse)

Usage:
------
    from pickup_orders.schemas import Order, OrderStatus
"""

from .orders import (
    # Enumerations
    OrderStatus,
    ReplacementPreference,
    StoreLocation,
    NotificationMethod,
    CommunicationDirection,
    CommunicationChannel,
    DeliveryStatus,
    OrderActionType,
    # Aggregate
    ReplacementSuggestion,
    OrderItem,
    Communication,
    OrderTimeline,
    Order,
    OrderDraft,
    # Requests
    CreateOrderItemRequest,
    CreateOrderRequest,
    UpdateOrderStatusRequest,
    SuggestReplacementRequest,
    OrderActionRequest,
    OrderFilters,
    # Responses
    OrderResponse,
    OrderListItem,
    OrderListResponse,
    StatusCounts,
    OrderStats,
    OrderStatsResponse,
    SweepResponse,
)

__all__ = [
    "OrderStatus",
    "ReplacementPreference",
    "StoreLocation",
    "NotificationMethod",
    "CommunicationDirection",
    "CommunicationChannel",
    "DeliveryStatus",
    "OrderActionType",
    "ReplacementSuggestion",
    "OrderItem",
    "Communication",
    "OrderTimeline",
    "Order",
    "OrderDraft",
    "CreateOrderItemRequest",
    "CreateOrderRequest",
    "UpdateOrderStatusRequest",
    "SuggestReplacementRequest",
    "OrderActionRequest",
    "OrderFilters",
    "OrderResponse",
    "OrderListItem",
    "OrderListResponse",
    "StatusCounts",
    "OrderStats",
    "OrderStatsResponse",
    "SweepResponse",
]
