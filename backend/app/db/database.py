"""
Database connection and session management.
"""

from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def _engine_options(database_url: str) -> dict[str, Any]:
    """Pool and driver options per dialect.

    SQLite (tests, local runs) uses SQLAlchemy's default pool, which does not
    accept sizing arguments.
    """
    if database_url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {
            "command_timeout": 60,
            "server_settings": {
                "application_name": settings.app_name.lower().replace(" ", "_"),
            },
        },
    }


try:
    engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))
    logger.info("Database engine created successfully")
except Exception as e:
    logger.error("Failed to create database engine", error=str(e))
    raise

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Create tables that do not exist yet.

    Concurrent workers may race on creation; a duplicate-object error from
    the loser is harmless because the tables exist afterwards.
    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(lambda sync_conn: Base.metadata.create_all(sync_conn, checkfirst=True))
        logger.info("Database tables initialized")
    except SQLAlchemyError as e:
        error_str = str(e)
        if "already exists" in error_str or "pg_type_typname_nsp_index" in error_str:
            logger.info("Database tables already created by another worker")
        else:
            logger.error("Failed to initialize database", error=error_str)
            raise


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


async def check_database_health() -> bool:
    """Check database connectivity and health"""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False
