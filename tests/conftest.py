"""Shared test fixtures for CPA sync."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cpasync.config import Settings
from cpasync.filestore.base import FileStoreEntry
from cpasync.main import create_app
from cpasync.models.base import Base
from cpasync.services.archive_service import CpaArchiveRepository

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path
    from types import TracebackType

    from fastapi import FastAPI


def cpa_document(cpa_id: str, body: str = "") -> str:
    """Minimal CPA document text carrying ``cpa_id``."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<tns:CollaborationProtocolAgreement tns:cpaid="{cpa_id}">{body}'
        "</tns:CollaborationProtocolAgreement>"
    )


class MemoryFileStore:
    """In-memory file store recording every mutating call."""

    def __init__(self, files: dict[str, tuple[bytes, int]] | None = None) -> None:
        self.files: dict[str, tuple[bytes, int]] = dict(files or {})
        self.calls: list[tuple[str, ...]] = []
        self.opened = 0
        self.closed = 0
        self.fail_on: dict[str, Exception] = {}

    def add(self, filename: str, content: str | bytes, mtime: int = 1735689600) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.files[filename] = (data, mtime)

    def _maybe_fail(self, operation: str) -> None:
        exc = self.fail_on.get(operation)
        if exc is not None:
            raise exc

    async def __aenter__(self) -> MemoryFileStore:
        self.opened += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def list_files(self) -> list[FileStoreEntry]:
        self._maybe_fail("list_files")
        return [FileStoreEntry(name, mtime) for name, (_, mtime) in sorted(self.files.items())]

    async def read(self, filename: str) -> bytes:
        self._maybe_fail("read")
        if filename not in self.files:
            raise FileNotFoundError(filename)
        return self.files[filename][0]

    async def rename(self, source: str, target: str) -> None:
        self._maybe_fail("rename")
        self.calls.append(("rename", source, target))
        self.files[target] = self.files.pop(source)

    async def copy(self, source: str, target: str) -> None:
        self._maybe_fail("copy")
        self.calls.append(("copy", source, target))
        self.files[target] = self.files[source]

    async def remove(self, filename: str) -> None:
        self._maybe_fail("remove")
        self.calls.append(("remove", filename))
        del self.files[filename]

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def memory_store() -> MemoryFileStore:
    return MemoryFileStore()


@pytest.fixture
def cpa_dir(tmp_path: Path) -> Path:
    """Create an empty CPA directory."""
    directory = tmp_path / "cpa"
    directory.mkdir()
    return directory


@pytest.fixture
def test_settings(cpa_dir: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        cpa_repo_url="http://cpa-repo.test",
        filestore_backend="local",
        cpa_directory=str(cpa_dir),
        scheduler_enabled=False,
    )


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def archive_repository(
    session_factory: async_sessionmaker[AsyncSession],
) -> CpaArchiveRepository:
    return CpaArchiveRepository(session_factory)


@asynccontextmanager
async def create_test_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client for an app whose state is already populated.

    ASGITransport does not run the application lifespan, so callers set
    ``app.state`` themselves.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)
