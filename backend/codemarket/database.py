"""Database configuration and async SQLAlchemy setup.

The engine and its connection pool belong to a :class:`Database` instance that
the application entry point builds during startup and stores on
``app.state.db``.  Request handlers receive sessions through :func:`get_db`.
"""
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# Base class for models
Base = declarative_base()


class Database:
    """Async engine plus session factory for one process."""

    def __init__(self, url: str, echo: bool = False):
        engine_kwargs = {"echo": echo, "future": True}
        if not url.startswith("sqlite"):
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=1800)

        self.url = url
        self.engine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table known to the model metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency to get database session."""
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        yield session
