"""
FastAPI dependencies that assemble the order services for a request.

Each request gets its own OrderStore bound to its database session. The
messaging gateway holds the SMS provider (a Twilio client) and is shared.
Tests replace get_gateway via app.dependency_overrides to capture messages.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from .db import get_db
from .services.catalog import ProductCatalog
from .services.expiration import ExpirationSweeper
from .services.lifecycle import LifecycleEngine
from .services.messaging import MessagingGateway
from .services.notifier import OrderNotifier
from .services.order_store import OrderStore
from .services.replacement import ReplacementNegotiation


@lru_cache(maxsize=1)
def get_gateway() -> MessagingGateway:
    return MessagingGateway()


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_catalog(db: Session = Depends(get_db)) -> ProductCatalog:
    return ProductCatalog(db)


def get_notifier(
    store: OrderStore = Depends(get_order_store),
    gateway: MessagingGateway = Depends(get_gateway),
) -> OrderNotifier:
    return OrderNotifier(store, gateway)


def get_lifecycle(
    store: OrderStore = Depends(get_order_store),
    notifier: OrderNotifier = Depends(get_notifier),
    catalog: ProductCatalog = Depends(get_catalog),
) -> LifecycleEngine:
    return LifecycleEngine(store, notifier, catalog)


def get_negotiation(
    store: OrderStore = Depends(get_order_store),
    notifier: OrderNotifier = Depends(get_notifier),
    catalog: ProductCatalog = Depends(get_catalog),
) -> ReplacementNegotiation:
    return ReplacementNegotiation(store, notifier, catalog)


def get_sweeper(
    store: OrderStore = Depends(get_order_store),
    lifecycle: LifecycleEngine = Depends(get_lifecycle),
) -> ExpirationSweeper:
    return ExpirationSweeper(store, lifecycle)
