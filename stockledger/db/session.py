"""SQLAlchemy session helpers with beginner-friendly guidance."""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from ..core.config import settings

# For SQLite, ensure ``check_same_thread=False`` so the connection can be shared
# by FastAPI worker threads. Other database engines ignore this argument.
CONNECT_ARGS = {"check_same_thread": False} if settings.DB_URL.startswith("sqlite") else {}


def enable_sqlite_foreign_keys(engine: Engine) -> Engine:
    """Turn on SQLite's FK enforcement so ``ON DELETE CASCADE`` actually fires.

    SQLite ships with foreign keys disabled per connection; the pragma has to
    be issued every time the pool opens a new connection.
    """

    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


# The engine manages the actual database connection pool. Creating it once per
# process keeps things fast and memory efficient.
engine = enable_sqlite_foreign_keys(create_engine(settings.DB_URL, connect_args=CONNECT_ARGS))
# ``SessionLocal`` is a factory function that builds new sessions per request.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
# ``Base`` is the parent class for every SQLAlchemy model defined in stockledger/models.
Base = declarative_base()


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
