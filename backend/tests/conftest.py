"""Shared fixtures: a throwaway SQLite database per test plus seeded stores."""
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.db.base import Base
import app.models  # noqa: F401  (register tables on Base.metadata)

from factories import SeededStore, seed_store


@pytest.fixture
async def engine(tmp_path):
    """
    File-backed SQLite engine.

    Every transaction starts with BEGIN IMMEDIATE, so concurrent sessions queue
    on the database write lock the way they queue on row locks in PostgreSQL.
    """
    db_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'retail_ops.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(db_engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(db_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def store(session_maker) -> SeededStore:
    return await seed_store(session_maker, "Main Street")


@pytest.fixture
async def other_store(session_maker) -> SeededStore:
    """A second tenant, seeded without a counter row."""
    return await seed_store(session_maker, "Harbour Mall", with_counter=False)
