# ledgersync/database.py

# type: ignore[misc]
from contextlib import asynccontextmanager
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def normalize_database_url(database_url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// for async support"""
    if not database_url:
        raise ValueError("DATABASE_URL is not set in environment variables")
    if database_url.startswith('postgresql://'):
        database_url = database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return database_url


def create_engine_and_sessionmaker(database_url: str, **engine_kwargs) -> Tuple[AsyncEngine, async_sessionmaker]:
    """Build the async engine and its session factory."""
    database_url = normalize_database_url(database_url)

    if database_url.startswith('postgresql+asyncpg://'):
        engine_kwargs.setdefault('pool_size', 10)
        engine_kwargs.setdefault('max_overflow', 20)
        engine_kwargs.setdefault('pool_timeout', 30)
        engine_kwargs.setdefault('pool_recycle', 1800)

    engine = create_async_engine(database_url, echo=False, future=True, **engine_kwargs)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    return engine, session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables. Used for SQLite deployments and tests; Postgres goes through Alembic."""
    from ledgersync import models  # noqa: F401  registers models on Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_session(session_factory: async_sessionmaker):
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()
