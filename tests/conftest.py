import os

# Rate limiting is configured at import time; keep it off for the test client
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pickup_orders.config as config_mod
import pickup_orders.db as db
from pickup_orders.dependencies import get_gateway
from pickup_orders.errors import NotificationError
from pickup_orders.main import app
from pickup_orders.models import Base, Product
from pickup_orders.schemas.orders import CreateOrderItemRequest, CreateOrderRequest
from pickup_orders.services.catalog import ProductCatalog
from pickup_orders.services.expiration import ExpirationSweeper
from pickup_orders.services.lifecycle import LifecycleEngine
from pickup_orders.services.messaging import MessagingGateway
from pickup_orders.services.notifier import OrderNotifier
from pickup_orders.services.order_store import OrderStore
from pickup_orders.services.replacement import ReplacementNegotiation
from pickup_orders.sms import BaseSmsProvider, normalize_phone_number

# Test admin credentials
TEST_ADMIN_USERNAME = "testadmin"
TEST_ADMIN_PASSWORD = "testpassword123"
TEST_CRON_SECRET = "cron-test-secret"

STORE_PHONE = "+15125550100"
CUSTOMER_PHONE = "+15125551234"

START = datetime(2026, 10, 19, 17, 0, tzinfo=timezone.utc)


# =============================================================================
# Fakes
# =============================================================================

class FakeSmsProvider(BaseSmsProvider):
    """Records messages instead of sending them."""

    name = "fake"

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, body):
        if self.fail:
            raise NotificationError("provider unavailable", channel="sms")
        self.sent.append((normalize_phone_number(to), body))
        return f"SM{len(self.sent):032d}"

    def messages_to(self, phone):
        return [body for to, body in self.sent if to == normalize_phone_number(phone)]


class FakeEmailSender:
    def __init__(self):
        self.sent = []

    def __call__(self, to_email, subject, body_text, body_html=None):
        self.sent.append({
            "to": to_email,
            "subject": subject,
            "body": body_text,
            "html": body_html,
        })
        return f"<msg-{len(self.sent)}@test>"


class FixedClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


# =============================================================================
# Database
# =============================================================================

def seed_products(session):
    session.add_all([
        Product(id="prod-a", name="Glass Hand Pipe", category="pipes", price=10.00),
        Product(id="prod-b", name="Herb Grinder", category="accessories", price=15.00),
        Product(id="prod-c", name="Glass Spoon Pipe", category="pipes", price=12.50),
        Product(id="prod-d", name="Rolling Papers", category="papers", price=2.99),
        Product(
            id="prod-retired",
            name="Discontinued Lighter",
            category="accessories",
            price=1.50,
            is_active=False,
        ),
    ])
    session.commit()


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session via StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = factory()
    seed_products(session)
    session.close()
    return factory


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def store_phones(monkeypatch):
    monkeypatch.setitem(config_mod.STORE_LOCATIONS["william-cannon"], "phone", STORE_PHONE)
    monkeypatch.setitem(config_mod.STORE_LOCATIONS["cameron-rd"], "phone", "+15125550200")


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def sms_provider():
    return FakeSmsProvider()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def gateway(sms_provider, email_sender, clock):
    return MessagingGateway(sms_provider, email_sender, clock)


@pytest.fixture
def store(db_session, clock):
    return OrderStore(db_session, clock)


@pytest.fixture
def catalog(db_session):
    return ProductCatalog(db_session)


@pytest.fixture
def notifier(store, gateway):
    return OrderNotifier(store, gateway)


@pytest.fixture
def lifecycle(store, notifier, catalog, clock):
    return LifecycleEngine(store, notifier, catalog, clock)


@pytest.fixture
def negotiation(store, notifier, catalog, clock):
    return ReplacementNegotiation(store, notifier, catalog, clock)


@pytest.fixture
def sweeper(store, lifecycle, clock):
    return ExpirationSweeper(store, lifecycle, clock)


@pytest.fixture
def make_request():
    """Build a CreateOrderRequest; items are (product_id, quantity) pairs."""
    def _make(items=(("prod-a", 2),), **overrides):
        data = {
            "customer_name": "Jordan Rivera",
            "customer_phone": "(512) 555-1234",
            "notification_method": "sms",
            "store_location": "william-cannon",
            "items": [
                CreateOrderItemRequest(product_id=pid, quantity=qty)
                for pid, qty in items
            ],
        }
        data.update(overrides)
        return CreateOrderRequest(**data)
    return _make


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def client(engine, session_factory, gateway, monkeypatch):
    """Shared FastAPI TestClient using the in-memory SQLite DB.

    The messaging gateway is replaced with one backed by FakeSmsProvider, so
    tests can inspect what would have been texted.
    """
    monkeypatch.setattr(config_mod, "ADMIN_USERNAME", TEST_ADMIN_USERNAME)
    monkeypatch.setattr(config_mod, "ADMIN_PASSWORD", TEST_ADMIN_PASSWORD)
    monkeypatch.setattr(config_mod, "CRON_SECRET", TEST_CRON_SECRET)

    # Patch the db module used by the app
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", session_factory)

    def override_get_db():
        db_sess = session_factory()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth():
    """Returns HTTP Basic Auth tuple for admin endpoints."""
    return (TEST_ADMIN_USERNAME, TEST_ADMIN_PASSWORD)


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {TEST_CRON_SECRET}"}
