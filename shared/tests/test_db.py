"""Tests for database session helpers."""

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, func, insert, select

from shared.utils import db

metadata = MetaData()
items = Table(
    "items",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(50)),
)


@pytest.fixture
async def sqlite_db(tmp_path):
    """Initialize the module-level engine against a temporary SQLite file."""
    db.init_db(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", pool_size=1, max_overflow=0)
    await db.create_tables(metadata)
    yield
    await db.close_db()


async def count_items() -> int:
    async with db.get_db_session() as session:
        return (await session.execute(select(func.count()).select_from(items))).scalar_one()


class TestDbSession:
    @pytest.mark.asyncio
    async def test_commits_on_success(self, sqlite_db):
        async with db.get_db_session() as session:
            await session.execute(insert(items).values(name="kept"))

        assert await count_items() == 1

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, sqlite_db):
        with pytest.raises(RuntimeError):
            async with db.get_db_session() as session:
                await session.execute(insert(items).values(name="discarded"))
                raise RuntimeError("boom")

        assert await count_items() == 0

    @pytest.mark.asyncio
    async def test_init_returns_session_factory(self, sqlite_db):
        assert db.get_session_factory() is not None
        assert db.get_engine().dialect.name == "sqlite"


class TestUninitialized:
    def test_engine_requires_init(self):
        with pytest.raises(RuntimeError, match="init_db"):
            db.get_engine()

    def test_session_factory_requires_init(self):
        with pytest.raises(RuntimeError, match="init_db"):
            db.get_session_factory()
