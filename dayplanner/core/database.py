"""
Database configuration and session management for Day Planner.
Supports both SQLite (development) and PostgreSQL (production).
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import DateTime, String, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .config import settings
from .exceptions import ConnectionError, DatabaseError
from .logger import get_logger

logger = get_logger(__name__)


def new_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())


# =============================================================================
# DATABASE BASE CLASS
# =============================================================================

class Base(DeclarativeBase):
    """Base class for all database models."""

    # Common fields for all models
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )


# =============================================================================
# DATABASE ENGINE SETUP
# =============================================================================

def get_database_url(db_url: str = None) -> str:
    """Get the appropriate async database URL based on configuration."""
    db_url = db_url or settings.database_url

    # Convert synchronous URLs to async
    if db_url.startswith("sqlite:///"):
        db_url = db_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    elif db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)

    return db_url


def _redact(database_url: str) -> str:
    return database_url.split('@')[-1] if '@' in database_url else database_url


def create_database_engine(db_url: str = None):
    """Create database engine with appropriate configuration."""
    database_url = get_database_url(db_url)

    logger.debug(f"Creating database engine for: {_redact(database_url)}")

    engine_kwargs = {
        "echo": settings.is_development and settings.debug,
    }

    if database_url.startswith("sqlite"):
        engine_kwargs.update({
            "pool_pre_ping": True,
            "connect_args": {"check_same_thread": False}
        })
    else:
        engine_kwargs.update({
            "pool_size": 20,
            "max_overflow": 0,
            "pool_pre_ping": True,
            "pool_recycle": 3600,  # 1 hour
        })

    try:
        return create_async_engine(database_url, **engine_kwargs)
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise ConnectionError(
            message=f"Failed to create database engine: {str(e)}",
            error_code="DB_ENGINE_CREATION_FAILED",
            details={"database_url": _redact(database_url)}
        )


# Global engine instance
engine = create_database_engine()

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# =============================================================================
# DATABASE SESSION MANAGEMENT
# =============================================================================

@asynccontextmanager
async def get_db_session(session_factory: async_sessionmaker = None):
    """
    Context manager for database sessions.
    Commits on success, rolls back on failure.
    """
    session = (session_factory or AsyncSessionLocal)()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

async def create_tables(target_engine=None):
    """Create all database tables."""
    # Register every model on Base.metadata
    from .. import models  # noqa: F401

    target_engine = target_engine or engine
    logger.info("Creating database tables...")

    try:
        async with target_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseError(
            message=f"Failed to create database tables: {str(e)}",
            error_code="DB_TABLE_CREATION_FAILED"
        )


async def drop_tables(target_engine=None):
    """Drop all database tables (use with caution!)."""
    target_engine = target_engine or engine
    logger.warning("Dropping all database tables...")

    try:
        async with target_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Database tables dropped")

    except Exception as e:
        logger.error(f"Failed to drop database tables: {e}")
        raise DatabaseError(
            message=f"Failed to drop database tables: {str(e)}",
            error_code="DB_TABLE_DROP_FAILED"
        )


async def check_database_connection(target_engine=None) -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection is working, False otherwise
    """
    target_engine = target_engine or engine
    try:
        async with target_engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
