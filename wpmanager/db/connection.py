"""Database connection management for WP AI Manager.

Provides synchronous database access using SQLAlchemy. SQLite is the
default; any SQLAlchemy URL can be supplied through DATABASE_URL.

Usage:
    from wpmanager.db.connection import get_db, init_db

    init_db()  # Create tables
    with get_db_context() as db:
        ...
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from wpmanager.db.models import Base


def get_database_url() -> str:
    """Get database URL from environment or use the default SQLite file.

    Precedence:
    1. DATABASE_URL
    2. sqlite:///<platform data dir>/wpmanager.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    from wpmanager.utils.paths import ensure_data_dir, get_default_db_path

    ensure_data_dir()
    return f"sqlite:///{get_default_db_path()}"


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """Turn on SQLite referential integrity for every new connection.

    SQLite ships with foreign keys disabled, which would silently skip the
    ON DELETE CASCADE rules that remove a site's conversations, actions and
    activities. No-op for other dialects.

    Args:
        target: Engine to attach the connect listener to.
    """
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


DATABASE_URL = get_database_url()

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False}
    if DATABASE_URL.startswith("sqlite")
    else {},
    echo=os.environ.get("SQL_ECHO", "").lower() == "true",
)
enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped database session.

    Intended for use with FastAPI's Depends().

    Yields:
        Session: SQLAlchemy session that will be closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions outside of FastAPI.

    Commits on clean exit, rolls back on error.

    Usage:
        with get_db_context() as db:
            site = db.query(Site).first()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create all database tables.

    Safe to call multiple times; existing tables are left untouched.
    """
    Base.metadata.create_all(bind=engine)


def close_db() -> None:
    """Dispose of the engine's connection pool."""
    engine.dispose()
