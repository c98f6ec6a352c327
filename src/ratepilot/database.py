"""SQLAlchemy engine and session setup."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ratepilot.config import get_database_url


class Base(DeclarativeBase):
    pass


_url = get_database_url()

engine = create_engine(
    _url,
    echo=False,
    # SQLite needs this because the config store runs in worker threads
    connect_args={"check_same_thread": False} if _url.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session() -> Session:
    """Create a new database session."""
    return SessionLocal()


def init_db() -> None:
    """Create all tables. Import models first so they register with Base."""
    import ratepilot.models.config_record  # noqa: F401

    Base.metadata.create_all(bind=engine)
