from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    JSON,
    DateTime,
    Text,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Product(Base):
    """Catalog product. Managed by the storefront admin; read-only here."""
    __tablename__ = "products"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    image = Column(String, nullable=True)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class OrderRecord(Base):
    """
    One pickup order.

    Line items, timeline and the communication log are JSON documents; the
    columns used for lookup and filtering are stored as scalars alongside.
    `version` is bumped on every write and checked by the mapper, so a
    stale read-modify-write fails instead of silently overwriting.
    """
    __tablename__ = "orders"

    id = Column(String, primary_key=True)
    sequence = Column(Integer, nullable=False, unique=True)
    order_number = Column(String, nullable=False, unique=True, index=True)

    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False, default="", index=True)
    customer_email = Column(String, nullable=True)
    notification_method = Column(String, nullable=False, default="sms")

    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)

    store_location = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    timeline = Column(JSON, nullable=False, default=dict)
    communications = Column(JSON, nullable=False, default=list)

    customer_notes = Column(Text, nullable=True)
    store_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Sweeper and dashboard filter by status and sort by date
    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
    )
