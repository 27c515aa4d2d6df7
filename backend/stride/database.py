"""Database configuration and session management."""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from stride.config import settings


class Base(DeclarativeBase):
    pass


def _engine_options(database_url: str) -> dict:
    """Pool and locking options for the configured backend."""
    if not database_url.startswith("postgresql"):
        return {"pool_pre_ping": True}
    # READ COMMITTED plus a lock timeout keeps concurrent session writes
    # from queueing behind each other indefinitely
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,
        "isolation_level": "READ COMMITTED",
        "connect_args": {"options": "-c lock_timeout=5000"},
    }


engine = create_engine(settings.database_url, echo=False, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; routes and services decide when to commit."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
