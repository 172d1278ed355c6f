# quizhub/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import text
import logging

from .config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, pool tuning only applies to PostgreSQL"""
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"timeout": 30},
        )

    return create_async_engine(
        database_url,
        pool_size=15,
        max_overflow=25,
        pool_timeout=60,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=(settings.environment == 'development'),
        connect_args={
            "command_timeout": 60,
            "server_settings": {
                "jit": "off",
                "application_name": "quizhub_api",
                "statement_timeout": "60s",
                "idle_in_transaction_session_timeout": "60s",
                "lock_timeout": "30s",
            }
        }
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
        autocommit=False,
    )


engine = build_engine(settings.database_url)

# Regular session factory for API requests
AsyncSessionLocal = build_session_factory(engine)


def get_session_factory() -> async_sessionmaker:
    """Session factory dependency, overridden in tests"""
    return AsyncSessionLocal


async def get_db(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    async with session_factory() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_models(bind: AsyncEngine = None):
    """Create all tables, used for local development and tests"""
    from ..models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def health_check_db() -> bool:
    """Fast health check with timeout handling"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
