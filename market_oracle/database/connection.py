"""
Database Connection
Async engine and session factory shared by the API and the pick-cycle jobs
"""

import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from market_oracle.core.config import get_settings
from market_oracle.database.models import Base

settings = get_settings()
logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver"""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


DATABASE_URL = async_database_url(settings.database_url)

engine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,  # SQL logging only in DEBUG
    pool_size=10,
    max_overflow=20,
    # jobs sleep for hours between runs
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_db():
    """Create tables (local runs; deployments use the alembic revisions)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Market Oracle tables created")


async def close_db():
    await engine.dispose()
    logger.info("Database engine disposed")
