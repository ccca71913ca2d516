import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from dockboard.config import settings


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine; SQLite needs no pool settings."""
    url = database_url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=settings.DEBUG,
            future=True,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        url,
        echo=settings.DEBUG,
        future=True,
        pool_pre_ping=True,  # Check connection health before use
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Lazily create the process-wide engine."""
    global _engine, _session_factory
    if _engine is None:
        _engine = build_engine()
        _session_factory = build_session_factory(_engine)
    return _engine


def get_session_factory() -> async_sessionmaker:
    get_engine()
    return _session_factory


@asynccontextmanager
async def get_db_session(session_factory: Optional[async_sessionmaker] = None) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for getting a database session that commits on success."""
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Initialize database tables."""
    # Import models to register them with Base.metadata
    from dockboard.models import document  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database tables ready ({len(Base.metadata.tables)} registered)")


async def close_db() -> None:
    """Dispose the process-wide engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
