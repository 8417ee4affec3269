"""Tests for database engine and session management."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, text

from cpasync.config import Settings
from cpasync.database import create_engine

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


class TestDatabase:
    async def test_engine_connects(self, db_engine: AsyncEngine) -> None:
        async with db_engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1

    async def test_session_works(self, db_session: AsyncSession) -> None:
        result = await db_session.execute(text("SELECT 42"))
        assert result.scalar() == 42

    async def test_schema_has_cpa_tables(self, db_engine: AsyncEngine) -> None:
        async with db_engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"partner_cpa", "partner_cpa_archive"} <= set(tables)


class TestCreateEngine:
    async def test_returns_engine_and_session_factory(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None, database_url=f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}"
        )
        engine, session_factory = create_engine(settings)
        try:
            async with session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar() == 1
        finally:
            await engine.dispose()
