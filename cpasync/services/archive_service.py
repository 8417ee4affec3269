"""CPA archive repository: append-only archive generations and live CPA rows.

Every operation runs in its own short transaction. Callers that need several
steps to happen together (CPA activation) sequence them explicitly and
re-read the newest generation instead of holding a lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, inspect, select, update

from cpasync.exceptions import MissingLiveRecordError
from cpasync.models.cpa import LIVE_FIELDS, ArchivedCpaRecord, PartnerCpa

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

# Columns not carried over when a generation is copied
_FRESH_COLUMNS = frozenset({"id", "created"})


@dataclass(frozen=True)
class ArchivedCpa:
    """Snapshot of one archive generation."""

    id: int
    cpa_id: str
    quarantined: bool
    deleted: bool
    partner_cpp_id: str | None = None
    mottak_id: str | None = None


def _copied_attributes() -> list[str]:
    return [
        attr.key
        for attr in inspect(ArchivedCpaRecord).column_attrs
        if attr.key not in _FRESH_COLUMNS
    ]


class CpaArchiveRepository:
    """Reads and writes ``partner_cpa_archive`` and ``partner_cpa``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_latest_by_cpa_id(self, cpa_id: str) -> ArchivedCpa | None:
        """Return the newest generation for ``cpa_id``, or None if never archived."""
        stmt = (
            select(ArchivedCpaRecord)
            .where(ArchivedCpaRecord.cpa_id == cpa_id)
            .order_by(ArchivedCpaRecord.id.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return ArchivedCpa(
            id=row.id,
            cpa_id=row.cpa_id,
            quarantined=row.quarantined,
            deleted=row.deleted,
            partner_cpp_id=row.partner_cpp_id,
            mottak_id=row.mottak_id,
        )

    async def insert_copy(self, archive_id: int) -> int:
        """Insert a verbatim copy of a generation and return the new row id.

        The copy gets a new surrogate id and a fresh ``created`` stamp.
        Raises LookupError if ``archive_id`` does not exist.
        """
        async with self._session_factory() as session, session.begin():
            source = await session.get(ArchivedCpaRecord, archive_id)
            if source is None:
                msg = f"Archived CPA {archive_id} does not exist"
                raise LookupError(msg)
            copy = ArchivedCpaRecord(
                **{name: getattr(source, name) for name in _copied_attributes()}
            )
            session.add(copy)
            await session.flush()
            new_id = copy.id
        logger.debug("Copied archived CPA %d to %d", archive_id, new_id)
        return new_id

    async def set_deleted(self, archive_id: int) -> None:
        """Mark a generation as deleted."""
        stmt = (
            update(ArchivedCpaRecord)
            .where(ArchivedCpaRecord.id == archive_id)
            .values(deleted=True)
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def restamp_as_new(self, archive_id: int, new_cpa_id: str, reference: str) -> None:
        """Turn a freshly copied generation into an active CPA under ``new_cpa_id``."""
        stmt = (
            update(ArchivedCpaRecord)
            .where(ArchivedCpaRecord.id == archive_id)
            .values(
                cpa_id=new_cpa_id,
                quarantined=False,
                deleted=False,
                partner_cpp_id=reference,
                mottak_id=reference,
            )
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def update_live_from_archive(self, cpa_id: str, archive_id: int) -> None:
        """Copy a generation's partner, endpoint and certificate fields onto the live row.

        Raises:
            LookupError: If the archive generation does not exist.
            MissingLiveRecordError: If there is no live row for ``cpa_id``.
        """
        async with self._session_factory() as session, session.begin():
            source = await session.get(ArchivedCpaRecord, archive_id)
            if source is None:
                msg = f"Archived CPA {archive_id} does not exist"
                raise LookupError(msg)
            values = {name: getattr(source, name) for name in LIVE_FIELDS}
            result = await session.execute(
                update(PartnerCpa).where(PartnerCpa.cpa_id == cpa_id).values(**values)
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise MissingLiveRecordError(cpa_id)

    async def delete_live(self, cpa_id: str) -> int:
        """Delete the live row for ``cpa_id``. Returns the number of rows removed."""
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(PartnerCpa).where(PartnerCpa.cpa_id == cpa_id))
        count: int = result.rowcount  # type: ignore[attr-defined]
        return count

    async def count_quarantined(self) -> int:
        """Count archive generations flagged as quarantined."""
        stmt = (
            select(func.count())
            .select_from(ArchivedCpaRecord)
            .where(ArchivedCpaRecord.quarantined.is_(True))
        )
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())
