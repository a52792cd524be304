from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from masscoin.shared.models.base import Base
from masscoin.shared.utils.logger import get_logger
from .config import Environment, settings

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        options = {"pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            options.update(
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_timeout=30,
                pool_recycle=3600,
            )
        _engine = create_async_engine(settings.DATABASE_URL, **options)
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return _session_factory


@asynccontextmanager
async def get_db(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncIterator[AsyncSession]:
    """One unit of work: commit on clean exit, rollback on any exception"""
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


async def init_db():
    if settings.ENVIRONMENT in (Environment.LOCAL, Environment.DEV):
        # Auto-create tables outside staging/prod
        import masscoin.domains.ledger.models  # noqa: F401

        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    else:
        # Staging/prod rely on migrations only
        logger.info(f"Skipping auto table creation in {settings.ENVIRONMENT.value}")


async def close_db():
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def check_connection() -> bool:
    try:
        async with get_engine().connect():
            return True
    except Exception:
        return False
