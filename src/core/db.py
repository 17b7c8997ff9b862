"""Database connection and session management."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, List

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from core.config import get_settings
from core.exceptions import DatabaseError
from core.logging_config import get_logger

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

# Tables that MUST exist for the system to function
REQUIRED_TABLES = [
    "folders",
    "properties",
    "renovations",
    "visits",
    "link_inbox",
    "documents",
    "folder_shares",
    "shared_itineraries",
]

_is_sqlite = SETTINGS.database_url.startswith("sqlite")
_is_memory = _is_sqlite and ":memory:" in SETTINGS.database_url


def _create_engine():
    if _is_memory:
        # One shared connection, otherwise every session sees an empty database
        return create_engine(
            SETTINGS.database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if _is_sqlite:
        return create_engine(
            SETTINGS.database_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
    return create_engine(
        SETTINGS.database_url,
        pool_size=SETTINGS.db_pool_size,
        max_overflow=SETTINGS.db_max_overflow,
        pool_timeout=SETTINGS.db_pool_timeout,
        pool_pre_ping=True,
    )


engine = _create_engine()

if _is_sqlite:

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not _is_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_readonly_session() -> Generator[Session, None, None]:
    """Context manager for read-only database sessions."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def flush_or_raise(session: Session, action: str) -> None:
    """
    Flush pending writes, surfacing failures as ``DatabaseError``.

    The session is rolled back on failure.
    """
    try:
        session.flush()
    except SQLAlchemyError as e:
        session.rollback()
        LOGGER.error(f"{action} failed: {e}")
        raise DatabaseError(f"{action} failed") from e


def _missing_tables() -> List[str]:
    existing = set(inspect(engine).get_table_names())
    return [t for t in REQUIRED_TABLES if t not in existing]


def init_db() -> Dict[str, Any]:
    """
    Create any missing tables.

    Returns:
        Dict with initialization results.
    """
    from core import models  # noqa: F401

    result: Dict[str, Any] = {
        "status": "success",
        "tables_created": [],
        "warnings": [],
    }

    try:
        before = set(inspect(engine).get_table_names())
        Base.metadata.create_all(bind=engine)
        after = set(inspect(engine).get_table_names())
        result["tables_created"] = sorted(after - before)

        missing = _missing_tables()
        if missing:
            result["status"] = "warning"
            result["warnings"].append(f"Missing required tables: {missing}")
    except Exception as e:
        LOGGER.error(f"init_db failed: {e}")
        result["status"] = "error"
        result["error"] = str(e)

    return result


def validate_database() -> Dict[str, Any]:
    """
    Validate database connection and required tables.

    Call this at application startup to ensure the database is ready.
    """
    result: Dict[str, Any] = {
        "status": "ok",
        "database_url": SETTINGS.database_url,
        "tables_found": [],
        "tables_missing": [],
        "errors": [],
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        result["tables_found"] = inspect(engine).get_table_names()
        missing = _missing_tables()
        result["tables_missing"] = missing
        if missing:
            result["status"] = "missing_tables"
            result["errors"].append(f"Missing required tables: {missing}")
    except Exception as e:
        result["status"] = "error"
        result["errors"].append(str(e))

    return result
