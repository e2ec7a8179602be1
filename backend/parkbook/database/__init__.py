"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from parkbook.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _build_engine_kwargs(db_url: str, timeout_seconds: int) -> dict[str, Any]:
    """Per-dialect engine options; every connection gets a bounded lock/statement wait."""
    if db_url.startswith("sqlite"):
        # SQLite serializes writers; `timeout` bounds how long a writer waits for the lock.
        return {
            "connect_args": {"check_same_thread": False, "timeout": timeout_seconds},
        }

    kwargs = dict(_DEFAULT_POOL_KWARGS)
    kwargs["connect_args"] = {
        "options": (
            f"-c statement_timeout={timeout_seconds * 1000} "
            f"-c lock_timeout={timeout_seconds * 1000}"
        ),
        "connect_timeout": 5,
        "application_name": "parkbook",
    }
    return kwargs


def build_engine(db_url: Optional[str] = None, timeout_seconds: Optional[int] = None) -> Engine:
    """Create an engine for ``db_url`` (defaults to the configured database)."""
    url = db_url or settings.database_url
    timeout = timeout_seconds or settings.database_timeout_seconds
    return create_engine(url, **_build_engine_kwargs(url, timeout))


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
    logger.debug("Database connection established")


engine: Engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = ["Base", "SessionLocal", "build_engine", "engine", "get_db"]
