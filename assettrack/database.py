from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from typing import Optional
import structlog

from assettrack.config import settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


def _get_db_url(url: Optional[str] = None) -> str:
    """Strip sslmode from URL since asyncpg uses connect_args for SSL."""
    url = url or settings.DATABASE_URL
    return url.replace("?sslmode=require", "").replace("&sslmode=require", "")


def create_engine(url: Optional[str] = None) -> AsyncEngine:
    raw_url = url or settings.DATABASE_URL
    db_url = _get_db_url(raw_url)
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=settings.DEBUG)

    connect_args = {"ssl": "require"} if "sslmode=require" in raw_url else {}
    return create_async_engine(
        db_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if engine.dialect.name == "sqlite":
            # Local development has no migration step
            import assettrack.models  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)
    logger.info("db_connected", dialect=engine.dialect.name)


async def close_db(engine: AsyncEngine):
    await engine.dispose()
    logger.info("db_disconnected")
