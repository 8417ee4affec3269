"""CPA activation: promote quarantined CPAs once their release time has passed.

Activating ``01230800_nav.60120._R_<payload>._R_.qrntn`` means:

1. on the file store, the quarantine file becomes ``nav.60120.xml``,
   replacing any existing file with that name;
2. in the archive, the newest generation of ``01230800_nav:60120`` is copied
   twice. The first copy is marked deleted, the second is re-stamped as
   ``nav:60120`` (not quarantined, new partner CPP id and mottak id);
3. the live ``nav:60120`` row takes the re-stamped generation's values and
   the live ``01230800_nav:60120`` row is deleted.

The steps are not transactional. A failure is logged with the state the
candidate reached and the batch moves on to the next file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from cpasync.exceptions import FilenameParseError
from cpasync.services.datetime_service import format_reference_timestamp, now_in_zone
from cpasync.services.filename_service import (
    document_id_from_filename,
    extract_canonical_id,
    extract_raw_id_segment,
)
from cpasync.services.quarantine_service import DuePolicy, select_due_entries

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from cpasync.config import Settings
    from cpasync.filestore.base import FileStore
    from cpasync.services.archive_service import CpaArchiveRepository

logger = logging.getLogger(__name__)


class ActivationState(StrEnum):
    """How far a quarantined CPA got through activation."""

    PENDING_RELEASE = "pending_release"
    FILE_RENAMED = "file_renamed"
    DB_PROMOTED = "db_promoted"
    # copy policy only: promoted on an earlier run, quarantine file removed now
    CLEANED_UP = "cleaned_up"


class FilePolicy(StrEnum):
    """How the quarantine file becomes the active CPA file."""

    RENAME = "rename"
    COPY = "copy"


@dataclass
class ActivationOutcome:
    """Result of activating one quarantine file."""

    filename: str
    state: ActivationState
    cpa_id: str | None = None
    error: str | None = None


@dataclass
class ActivationReport:
    """Results of one activation pass."""

    outcomes: list[ActivationOutcome] = field(default_factory=list)

    @property
    def activated(self) -> list[str]:
        return [o.filename for o in self.outcomes if o.state == ActivationState.DB_PROMOTED]

    @property
    def failed(self) -> list[str]:
        return [o.filename for o in self.outcomes if o.error is not None]


class CpaActivateService:
    """Finds due quarantine files and activates them one by one."""

    def __init__(
        self,
        archive_repository: CpaArchiveRepository,
        file_store_factory: Callable[[], FileStore] | None = None,
        *,
        timezone: str = "Europe/Oslo",
        due_policy: DuePolicy = DuePolicy.EXACT_DAY,
        file_policy: FilePolicy = FilePolicy.RENAME,
        reference_suffix: str = "cpa-aktivering",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.archive_repository = archive_repository
        self.file_store_factory = file_store_factory
        self.timezone = timezone
        self.due_policy = due_policy
        self.file_policy = file_policy
        self.reference_suffix = reference_suffix
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        archive_repository: CpaArchiveRepository,
        file_store_factory: Callable[[], FileStore],
    ) -> CpaActivateService:
        return cls(
            archive_repository,
            file_store_factory,
            timezone=settings.activation_timezone,
            due_policy=DuePolicy(settings.activation_due_policy),
            file_policy=FilePolicy(settings.activation_file_policy),
            reference_suffix=settings.promotion_reference_suffix,
        )

    def now(self) -> datetime:
        """Current time in the activation timezone."""
        if self._clock is not None:
            return self._clock()
        return now_in_zone(self.timezone)

    async def activate_pending_cpas(self) -> ActivationReport:
        """Open a file store session and activate every due quarantine file."""
        if self.file_store_factory is None:
            msg = "No file store configured for standalone activation"
            raise RuntimeError(msg)
        async with self.file_store_factory() as store:
            return await self.activate_due(store)

    async def activate_due(self, store: FileStore) -> ActivationReport:
        """Activate every due quarantine file on an already open file store session."""
        now = self.now()
        due = select_due_entries(await store.list_files(), now, self.due_policy)
        report = ActivationReport()
        for entry in due:
            report.outcomes.append(await self.activate(store, entry.filename, now))
        return report

    async def activate(self, store: FileStore, filename: str, now: datetime) -> ActivationOutcome:
        """Run all activation steps for one quarantine file. Never raises."""
        try:
            activated_name = extract_canonical_id(filename)
            tmp_name = extract_raw_id_segment(filename)
        except FilenameParseError as exc:
            logger.warning(
                "Failed to convert %s to activated CPA file name: %s", filename, exc.reason
            )
            return ActivationOutcome(filename, ActivationState.PENDING_RELEASE, error=str(exc))

        cpa_id = document_id_from_filename(activated_name)
        tmp_cpa_id = document_id_from_filename(tmp_name)
        outcome = ActivationOutcome(filename, ActivationState.PENDING_RELEASE, cpa_id=cpa_id)
        try:
            if self.file_policy == FilePolicy.COPY and await self._already_promoted(tmp_cpa_id):
                await store.remove(filename)
                logger.info("%s was activated earlier, removed quarantine file", filename)
                outcome.state = ActivationState.CLEANED_UP
                return outcome

            await self.activate_at_file_store(store, filename, activated_name)
            outcome.state = ActivationState.FILE_RENAMED

            if await self.promote_in_database(tmp_cpa_id, cpa_id, now):
                outcome.state = ActivationState.DB_PROMOTED
            else:
                outcome.error = f"No archived CPA found for {tmp_cpa_id}"
        except Exception as exc:
            logger.exception("Failed to activate %s (reached state %s)", filename, outcome.state)
            outcome.error = str(exc) or type(exc).__name__
        return outcome

    async def _already_promoted(self, tmp_cpa_id: str) -> bool:
        latest = await self.archive_repository.find_latest_by_cpa_id(tmp_cpa_id)
        return latest is not None and latest.deleted

    async def activate_at_file_store(self, store: FileStore, filename: str, target: str) -> None:
        """Give the quarantine file its activated name, replacing any existing file."""
        if self.file_policy == FilePolicy.COPY:
            await store.copy(filename, target)
        else:
            await store.rename(filename, target)
        logger.info("%s has been activated with file name %s", filename, target)

    def reference_token(self, now: datetime) -> str:
        """Partner CPP id and mottak id given to a newly activated CPA."""
        return f"{format_reference_timestamp(now)}.{self.reference_suffix}"

    async def promote_in_database(self, tmp_cpa_id: str, cpa_id: str, now: datetime) -> bool:
        """Promote the quarantined archive generation ``tmp_cpa_id`` to ``cpa_id``.

        Returns False if ``tmp_cpa_id`` was never archived. Raises
        MissingLiveRecordError if ``cpa_id`` has no live row; the temporary
        live row is then left in place.
        """
        logger.info("Activating CPA %s from %s", cpa_id, tmp_cpa_id)
        repo = self.archive_repository
        latest_tmp = await repo.find_latest_by_cpa_id(tmp_cpa_id)
        if latest_tmp is None:
            logger.warning("No archived CPA found for %s, nothing to promote", tmp_cpa_id)
            return False

        tombstone_id = await repo.insert_copy(latest_tmp.id)
        await repo.set_deleted(tombstone_id)

        reference = self.reference_token(now)
        logger.info("Creating new CPA record for %s with CPP_ID=%s", cpa_id, reference)
        promoted_id = await repo.insert_copy(latest_tmp.id)
        await repo.restamp_as_new(promoted_id, cpa_id, reference)

        await repo.update_live_from_archive(cpa_id, promoted_id)
        await repo.delete_live(tmp_cpa_id)
        return True
