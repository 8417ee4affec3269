"""File store backend registry."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from cpasync.filestore.local import LocalFileStore
from cpasync.filestore.sftp import SftpFileStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from cpasync.config import Settings
    from cpasync.filestore.base import FileStore

BACKENDS = ("sftp", "local")


def create_file_store_factory(settings: Settings) -> Callable[[], FileStore]:
    """Return a factory producing a fresh, unopened file store session per call.

    Raises ValueError if the configured backend is unknown.
    """
    backend = settings.filestore_backend
    if backend == "local":
        directory = Path(settings.cpa_directory)
        return lambda: LocalFileStore(directory)
    if backend == "sftp":
        passphrase = (
            settings.sftp_passphrase.get_secret_value()
            if settings.sftp_passphrase is not None
            else None
        )
        return lambda: SftpFileStore(
            host=settings.sftp_host,
            port=settings.sftp_port,
            username=settings.sftp_username,
            directory=settings.cpa_directory,
            private_key_path=settings.sftp_private_key_path,
            passphrase=passphrase,
            known_hosts_path=settings.sftp_known_hosts_path,
            timeout=settings.sftp_timeout_seconds,
        )
    msg = f"Unknown file store backend: {backend!r}. Available: {list(BACKENDS)}"
    raise ValueError(msg)
