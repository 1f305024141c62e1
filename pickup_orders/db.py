"""
Database connection management.

Environment variables:
    - DATABASE_URL: SQLAlchemy connection URL (PostgreSQL in production,
      defaults to a local SQLite file for development)

Tables are managed by Alembic in production (`alembic upgrade head`).
init_db() creates any missing tables and is called at application startup
so a fresh development database works without running migrations.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from . import config
from .models import Base


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    config.DATABASE_URL,
    echo=False,
    **_engine_kwargs(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a SQLAlchemy Session.

    Usage:
        @router.get("/orders/{order_id}")
        def get_order(order_id: str, db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables on the configured engine."""
    Base.metadata.create_all(bind=engine)
