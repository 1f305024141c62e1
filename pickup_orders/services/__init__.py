"""
Services Package for Pickup Orders
==================================

Business logic for pickup orders. Routes stay thin and delegate here; the
services raise errors.OrderServiceError subclasses instead of HTTP errors so
they also run outside a request (the sweeper, tests).

Available Services:
-------------------
- **pricing**: Line totals, tax and order totals
- **order_store**: Order persistence with optimistic concurrency
- **catalog**: Product lookups
- **messaging**: Message templates, SMS/email gateway, reply classification
- **events** / **notifier**: Domain events and best-effort notifications
- **lifecycle**: Status transitions and the pickup window
- **replacement**: Out-of-stock substitutions negotiated over SMS
- **expiration**: Sweeper that marks expired ready orders as no-shows

Dependency Injection:
---------------------
Services receive their collaborators (store, notifier, catalog, clock)
rather than creating them; see dependencies.py for the request wiring.

Usage:
------
    from pickup_orders.services.lifecycle import LifecycleEngine
    from pickup_orders.services import pricing
"""

from . import pricing
from . import order_store
from . import lifecycle

__all__ = ["pricing", "order_store", "lifecycle"]
