"""
Async engine and session factory
"""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..config import settings
from ..models import Base


def _engine_options() -> dict:
    if settings.is_sqlite:
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.async_database_url, **_engine_options())
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request"""
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """FastAPI dependency for handlers that run several queries concurrently, one session each"""
    return AsyncSessionLocal


async def create_all() -> None:
    """Create every table directly; migrations are the production path"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
