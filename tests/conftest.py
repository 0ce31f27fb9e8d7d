"""Shared pytest fixtures for the classification test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- db_session: SAVEPOINT-isolated async session (commits don't leak)
- session_factory: sessionmaker on db_engine, for code that owns its units of work
- catalog rows: three main categories and one sub category
"""

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from src.db.session import Base, create_session_factory
import src.db.tables  # noqa: F401  register ORM models on Base.metadata
from src.models.common import new_uuid7
from src.models.mapping import MainCategory, SubCategory


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Provide a SAVEPOINT-isolated session.

    The outer transaction is never committed; it rolls back at teardown.
    Application code calling session.commit() triggers a SAVEPOINT release,
    which is then restarted so subsequent operations stay in the same
    outer transaction.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        nested = await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(sync_session, transaction):  # noqa: ARG001
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = conn.sync_connection.begin_nested()

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def session_factory(db_engine):
    """Session maker on the per-test engine. Commits are real (fresh DB per test)."""
    return create_session_factory(db_engine)


@pytest.fixture
def agriculture() -> MainCategory:
    return MainCategory(
        id=new_uuid7(), slug="agriculture-et-environnement",
        label_fr="Agriculture et environnement",
    )


@pytest.fixture
def construction() -> MainCategory:
    return MainCategory(
        id=new_uuid7(), slug="construction-et-renovation",
        label_fr="Construction et rénovation",
    )


@pytest.fixture
def transport() -> MainCategory:
    return MainCategory(
        id=new_uuid7(), slug="automobile-et-transport",
        label_fr="Automobile et transport",
    )


@pytest.fixture
def garages(transport) -> SubCategory:
    return SubCategory(
        id=new_uuid7(), main_category_id=transport.id,
        slug="garages", label_fr="Garages",
    )
