"""Database engine and session management."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from yatra.core.config import settings
import os


def _enforce_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # Room.occupied_by and Registration.hotel_id must reference real rows
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the allocation database.

    SQLite files get their directory created and are shared across request
    threads; an in-memory SQLite database is pinned to one connection so
    every session sees the same tables.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=False)

    db_path = database_url.replace("sqlite:///", "")
    options = {"connect_args": {"check_same_thread": False}, "echo": False}
    if db_path in ("", ":memory:"):
        options["poolclass"] = StaticPool
    else:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    sqlite_engine = create_engine(database_url, **options)
    event.listen(sqlite_engine, "connect", _enforce_sqlite_foreign_keys)
    return sqlite_engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for FastAPI to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
