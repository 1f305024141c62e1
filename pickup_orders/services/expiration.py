"""
Expiration sweeper.

Run periodically (GET /cron/expire-orders) to turn ready orders whose pickup
window has passed into no-shows. Safe to run concurrently with staff
actions and with itself: an order that changed underneath the sweep is
skipped and picked up again on the next run if still eligible.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from ..errors import ConcurrentModificationError, OrderNotFoundError, OrderValidationError
from ..schemas.orders import OrderFilters, OrderStatus
from .lifecycle import LifecycleEngine, effective_pickup_deadline
from .order_store import OrderStore, as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    checked: int = 0
    expired_ids: List[str] = field(default_factory=list)


class ExpirationSweeper:
    def __init__(
        self,
        store: OrderStore,
        lifecycle: LifecycleEngine,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.clock = clock

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Expire every ready order whose pickup deadline is before `now`.

        Returns:
            SweepResult with the number of ready orders checked and the ids
            of the orders that were expired by this run
        """
        now = as_utc(now or self.clock())
        ready = self.store.list(OrderFilters(statuses=[OrderStatus.READY]))
        result = SweepResult(checked=len(ready))

        for order in ready:
            deadline = effective_pickup_deadline(order)
            if deadline is None or now <= deadline:
                continue
            try:
                self.lifecycle.expire(order.id, now=now)
            except (OrderValidationError, OrderNotFoundError) as e:
                # Picked up or cancelled since the listing
                logger.info("Skipping order %s: %s", order.order_number, e)
                continue
            except ConcurrentModificationError:
                logger.warning(
                    "Order %s kept changing during the sweep, will retry next run",
                    order.order_number,
                )
                continue
            result.expired_ids.append(order.id)

        if result.expired_ids:
            logger.info(
                "Expired %d of %d ready order(s)", len(result.expired_ids), result.checked
            )
        else:
            logger.debug("No ready orders past their pickup deadline (%d checked)", result.checked)
        return result
