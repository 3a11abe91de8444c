"""
============================================================================
Paycore v1.0.0
Database Session - SQLAlchemy Engine & Session Management
============================================================================

Input Constraints: DATABASE_URL (any SQLAlchemy URL; sqlite by default)
Side Effects: Database connections

The engine is created lazily on first use so importing paycore never
opens a connection.

============================================================================
"""

import logging
import os
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from paycore.config import get_payment_config

logger = logging.getLogger(__name__)


# ============================================================================
# ENGINE
# ============================================================================

def create_engine_from_url(url: str) -> Engine:
    """
    Build an engine for ``url``.

    Connection pooling options only apply to server databases; sqlite
    uses SQLAlchemy's defaults.
    """
    echo = os.getenv("DB_ECHO", "false").lower() == "true"
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=echo,
    )


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_engine_from_url(get_payment_config().database_url)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def reset_engine() -> None:
    """Dispose the cached engine (tests, config reloads)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session injection.

    Yields:
        Session: SQLAlchemy session, rolled back on error and always closed
    """
    db = get_session_factory()()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ============================================================================
# HEALTH CHECK
# ============================================================================

def check_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify database connectivity.

    Returns:
        bool: True if the database answered, False otherwise (logged)
    """
    try:
        with (engine or get_engine()).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"[PAY-DB] Database connection failed | error={e}")
        return False
