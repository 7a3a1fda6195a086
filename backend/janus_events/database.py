"""Database engine, session factory and schema bootstrap."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from janus_events.config import settings
from janus_events.utils.logging import get_logger

logger = get_logger("database")


class Base(DeclarativeBase):
    pass


class OptionalBase(DeclarativeBase):
    """Tables a deployment may not have migrated yet."""
    pass


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    url = database_url or settings.database_url
    kwargs: dict = {"echo": False, "future": True}
    if url.startswith("sqlite"):
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def _init_tables(connection, include_optional: bool) -> None:
    # models must be imported so their tables register on the metadata
    import janus_events.models  # noqa: F401

    Base.metadata.create_all(connection)
    if include_optional:
        OptionalBase.metadata.create_all(connection)


async def init_db(engine: AsyncEngine, include_optional: Optional[bool] = None) -> None:
    if include_optional is None:
        include_optional = settings.create_optional_tables
    async with engine.begin() as conn:
        await conn.run_sync(_init_tables, include_optional)


async def ping(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@asynccontextmanager
async def lifespan_db(database_url: Optional[str] = None) -> AsyncIterator[AsyncEngine]:
    engine = build_engine(database_url)
    try:
        await ping(engine)
        logger.info("database_connected", dialect=engine.dialect.name)
        if settings.create_tables:
            await init_db(engine)
        yield engine
    finally:
        await engine.dispose()
        logger.info("database_pool_closed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_maker = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
