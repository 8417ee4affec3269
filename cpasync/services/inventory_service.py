"""Inventory of the CPA files currently on the file store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cpasync.exceptions import DuplicateDocumentIdError
from cpasync.services.content_service import compress, extract_document_id
from cpasync.services.datetime_service import instant_from_epoch
from cpasync.services.filename_service import is_document_filename

if TYPE_CHECKING:
    from cpasync.filestore.base import FileStore, FileStoreEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryEntry:
    """A CPA found on the file store, compressed for transit."""

    cpa_id: str
    timestamp: str
    content: bytes
    filename: str


async def read_inventory_entry(store: FileStore, entry: FileStoreEntry) -> InventoryEntry | None:
    """Read one CPA file. Returns None if no CPA id can be found in its content."""
    timestamp = instant_from_epoch(entry.mtime)
    # Undecodable bytes become U+FFFD
    content = (await store.read(entry.filename)).decode("utf-8", errors="replace")
    cpa_id = extract_document_id(content)
    if cpa_id is None:
        logger.warning(
            "No CPA ID found in file %s. File corrupted or not a CPA.", entry.filename
        )
        return None
    return InventoryEntry(
        cpa_id=cpa_id,
        timestamp=timestamp,
        content=compress(content),
        filename=entry.filename,
    )


async def build_inventory(store: FileStore) -> dict[str, InventoryEntry]:
    """Build a map of CPA id to inventory entry from every ``.xml`` file.

    Raises DuplicateDocumentIdError if two files carry the same CPA id.
    """
    inventory: dict[str, InventoryEntry] = {}
    for entry in await store.list_files():
        if not is_document_filename(entry.filename):
            logger.debug("%s is ignored. Invalid file ending", entry.filename)
            continue
        cpa = await read_inventory_entry(store, entry)
        if cpa is None:
            continue
        existing = inventory.get(cpa.cpa_id)
        if existing is not None:
            raise DuplicateDocumentIdError(cpa.cpa_id, existing.filename, cpa.filename)
        inventory[cpa.cpa_id] = cpa
    return inventory
