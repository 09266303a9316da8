from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from fastapi import HTTPException
from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from breathwork.config.settings import settings

# Lazy initialization to avoid import-time database connections
_engine = None
_SessionLocal = None


def _is_postgresql(url: str) -> bool:
    lowered = url.lower()
    return "postgresql" in lowered or "postgres" in lowered


def _get_engine():
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        logger.info(f"Initializing database engine: {settings.database_url}")

        connect_args = {}
        if "sqlite" in settings.database_url.lower():
            connect_args = {"check_same_thread": False}
            logger.warning("Using SQLite database (local development only)")
        elif _is_postgresql(settings.database_url):
            connect_args = {
                "connect_timeout": 10,
                "application_name": "breathwork",
            }
            logger.info("Using PostgreSQL database")

        _engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            echo=False,
            pool_pre_ping=True,
        )
        logger.info("Database engine initialized")
    return _engine


def get_engine():
    """Get or create the database engine (public API)."""
    return _get_engine()


def _get_session_local():
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


def check_database_connection() -> None:
    """Test database connection on startup."""
    try:
        with _get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection test successful")
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {e}")
        raise


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get database session context manager.

    Commits on clean exit. HTTPException is re-raised after rollback without
    being logged as a database error (expected API responses).
    """
    session = _get_session_local()()
    try:
        yield session
        session.commit()
    except HTTPException:
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Database session error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()
