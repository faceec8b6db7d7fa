# policyflow/db/engine.py
"""
Database engine and session management.

The engine is created on first use from settings.database_url.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from ..settings import settings

# Base class for ORM models
Base = declarative_base()

_engine: Optional[Engine] = None

# Session factory, bound when the engine is created
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def get_engine() -> Engine:
    """Get (or create) the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,  # Check connection health
        )
        SessionLocal.configure(bind=_engine)
    return _engine


def init_db(engine: Optional[Engine] = None):
    """Create tables that do not exist yet."""
    from . import store  # noqa: F401  registers models on Base
    Base.metadata.create_all(bind=engine or get_engine())


def get_session() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields a session that auto-closes on context exit.
    For use with FastAPI Depends.
    """
    get_engine()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with session_scope() as session:
            PolicyStore(session).list()
    """
    get_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_connection() -> bool:
    """
    Check database connection.

    Returns:
        True if connection successful
    """
    try:
        with session_scope() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
