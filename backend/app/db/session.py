"""Retail Ops — Async SQLAlchemy session and engine."""
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
    echo=settings.DEBUG,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def _set_store_context(session: AsyncSession, store_id: str) -> None:
    """Set app.store_id for the row-level-security policies (PostgreSQL only)."""
    if session.bind.dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT set_config('app.store_id', :sid, true)"),
        {"sid": str(store_id)},
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency: yield async DB session.
    One transaction per request: commit on success, rollback on any error.
    """
    store_id = getattr(request.state, "store_id", None)
    async with async_session_maker() as session:
        if store_id:
            await _set_store_context(session, store_id)
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def unit_of_work(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """All-or-nothing session scope for scripts and service callers outside a request."""
    maker = session_maker or async_session_maker
    async with maker() as session:
        async with session.begin():
            yield session
