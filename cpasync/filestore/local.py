"""File store over a local (or locally mounted) directory."""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from cpasync.filestore.base import FileStoreEntry

if TYPE_CHECKING:
    from types import TracebackType


class LocalFileStore:
    """CPA directory on the local filesystem, used for development and tests."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    async def __aenter__(self) -> LocalFileStore:
        if not self.directory.is_dir():
            msg = f"CPA directory does not exist: {self.directory}"
            raise NotADirectoryError(msg)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _resolve(self, filename: str) -> Path:
        path = (self.directory / filename).resolve()
        if not path.is_relative_to(self.directory.resolve()):
            msg = f"Invalid file name: {filename}"
            raise ValueError(msg)
        return path

    def _list(self) -> list[FileStoreEntry]:
        entries: list[FileStoreEntry] = []
        with os.scandir(self.directory) as it:
            for item in it:
                if item.is_file():
                    entries.append(FileStoreEntry(item.name, int(item.stat().st_mtime)))
        return sorted(entries, key=lambda entry: entry.filename)

    async def list_files(self) -> list[FileStoreEntry]:
        return await asyncio.to_thread(self._list)

    async def read(self, filename: str) -> bytes:
        return await asyncio.to_thread(self._resolve(filename).read_bytes)

    async def rename(self, source: str, target: str) -> None:
        await asyncio.to_thread(os.replace, self._resolve(source), self._resolve(target))

    async def copy(self, source: str, target: str) -> None:
        await asyncio.to_thread(shutil.copyfile, self._resolve(source), self._resolve(target))

    async def remove(self, filename: str) -> None:
        await asyncio.to_thread(self._resolve(filename).unlink)

    async def close(self) -> None:
        return None
