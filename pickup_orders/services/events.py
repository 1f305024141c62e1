"""
Domain events emitted by order state changes.

The lifecycle engine and the replacement protocol return these after their
write commits; OrderNotifier turns them into customer and store messages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventKind(str, Enum):
    ORDER_PLACED = "order-placed"
    ORDER_CONFIRMED = "order-confirmed"
    ORDER_READY = "order-ready"
    ORDER_CANCELLED = "order-cancelled"
    ORDER_NO_SHOW = "order-no-show"
    ORDER_COMPLETED = "order-completed"
    REPLACEMENT_SUGGESTED = "replacement-suggested"
    REPLACEMENT_APPLIED = "replacement-applied"


@dataclass(frozen=True)
class OrderEvent:
    """Something that happened to an order, with template parameters."""
    kind: EventKind
    params: Dict[str, Any] = field(default_factory=dict)
