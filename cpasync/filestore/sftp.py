"""File store over SFTP using paramiko.

paramiko is blocking; every channel call runs in a worker thread so a slow
share does not stall the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import stat
from typing import TYPE_CHECKING

import paramiko

from cpasync.filestore.base import FileStoreEntry

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

logger = logging.getLogger(__name__)


class SftpFileStore:
    """One SSH session and SFTP channel on the CPA directory.

    Args:
        host: SFTP server host name.
        port: SFTP server port.
        username: Login user.
        directory: Absolute remote path of the CPA directory.
        private_key_path: Private key used for authentication.
        passphrase: Passphrase for the private key, if any.
        known_hosts_path: known_hosts file; system host keys are used if None.
        timeout: Connect timeout in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        directory: str,
        private_key_path: Path | None = None,
        passphrase: str | None = None,
        known_hosts_path: Path | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.directory = directory
        self._private_key_path = private_key_path
        self._passphrase = passphrase
        self._known_hosts_path = known_hosts_path
        self._timeout = timeout
        self._client: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None

    async def __aenter__(self) -> SftpFileStore:
        await asyncio.to_thread(self._connect)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _connect(self) -> None:
        client = paramiko.SSHClient()
        if self._known_hosts_path is not None:
            client.load_host_keys(str(self._known_hosts_path))
        else:
            client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
        try:
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                key_filename=(
                    str(self._private_key_path) if self._private_key_path is not None else None
                ),
                passphrase=self._passphrase,
                timeout=self._timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            sftp = client.open_sftp()
            sftp.chdir(self.directory)
        except Exception:
            client.close()
            raise
        self._client = client
        self._sftp = sftp
        logger.debug("Opened SFTP session to %s:%d%s", self.host, self.port, self.directory)

    @property
    def _channel(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            msg = "SFTP session is not open"
            raise RuntimeError(msg)
        return self._sftp

    def _path(self, filename: str) -> str:
        return posixpath.join(self.directory, filename)

    def _list(self) -> list[FileStoreEntry]:
        entries: list[FileStoreEntry] = []
        for attrs in self._channel.listdir_attr(self.directory):
            if attrs.st_mode is not None and not stat.S_ISREG(attrs.st_mode):
                continue
            entries.append(FileStoreEntry(attrs.filename, int(attrs.st_mtime or 0)))
        return entries

    def _read(self, filename: str) -> bytes:
        with self._channel.open(self._path(filename), "rb") as remote:
            return remote.read()

    def _copy(self, source: str, target: str) -> None:
        with self._channel.open(self._path(source), "rb") as remote:
            self._channel.putfo(remote, self._path(target), confirm=True)

    async def list_files(self) -> list[FileStoreEntry]:
        return await asyncio.to_thread(self._list)

    async def read(self, filename: str) -> bytes:
        return await asyncio.to_thread(self._read, filename)

    async def rename(self, source: str, target: str) -> None:
        # posix-rename overwrites an existing target; plain SFTP rename refuses
        await asyncio.to_thread(
            self._channel.posix_rename, self._path(source), self._path(target)
        )

    async def copy(self, source: str, target: str) -> None:
        await asyncio.to_thread(self._copy, source, target)

    async def remove(self, filename: str) -> None:
        await asyncio.to_thread(self._channel.remove, self._path(filename))

    async def close(self) -> None:
        sftp, client = self._sftp, self._client
        self._sftp = None
        self._client = None
        if sftp is not None:
            await asyncio.to_thread(sftp.close)
        if client is not None:
            await asyncio.to_thread(client.close)
