"""Base protocol and data classes for CPA file stores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType


@dataclass(frozen=True)
class FileStoreEntry:
    """A regular file in the CPA directory."""

    filename: str
    mtime: int  # last modified, epoch seconds


@runtime_checkable
class FileStore(Protocol):
    """A session on the directory holding CPA files.

    Sessions are scoped: open with ``async with`` and they are closed on
    every exit path. All names are relative to the configured directory.
    """

    async def __aenter__(self) -> FileStore: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    async def list_files(self) -> list[FileStoreEntry]:
        """List regular files in the CPA directory."""
        ...

    async def read(self, filename: str) -> bytes:
        """Read a file's full content."""
        ...

    async def rename(self, source: str, target: str) -> None:
        """Rename ``source`` to ``target``, replacing ``target`` if it exists."""
        ...

    async def copy(self, source: str, target: str) -> None:
        """Copy ``source`` to ``target``, replacing ``target`` if it exists."""
        ...

    async def remove(self, filename: str) -> None:
        """Delete a file."""
        ...

    async def close(self) -> None:
        """Release the session. Idempotent."""
        ...
