"""Sync service: reconcile the file-store CPAs with the CPA repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import paramiko

from cpasync.exceptions import RepositoryDataError
from cpasync.services.content_service import decompress
from cpasync.services.datetime_service import parse_instant
from cpasync.services.inventory_service import build_inventory

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from cpasync.cpa_repo.client import CpaRepoClient
    from cpasync.filestore.base import FileStore
    from cpasync.services.activation_service import ActivationReport, CpaActivateService

logger = logging.getLogger(__name__)


@dataclass
class SyncPlan:
    """The computed sync plan."""

    to_upsert: list[str] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)


@dataclass
class SyncResult:
    """What one sync run did."""

    upserted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    activated: list[str] = field(default_factory=list)
    activation_failures: list[str] = field(default_factory=list)


def should_upsert(inventory_timestamp: str, repository_timestamp: str | None) -> bool:
    """Return True if the file-store copy is new or strictly newer than the repository's.

    Raises RepositoryDataError if the repository timestamp cannot be parsed.
    """
    if repository_timestamp is None:
        return True
    try:
        repository_instant = parse_instant(repository_timestamp)
    except ValueError as exc:
        msg = f"Unreadable repository timestamp {repository_timestamp!r}"
        raise RepositoryDataError(msg) from exc
    return parse_instant(inventory_timestamp) > repository_instant


def compute_sync_plan(
    inventory_timestamps: Mapping[str, str],
    repository_timestamps: Mapping[str, str],
) -> SyncPlan:
    """Compute the sync plan from file-store and repository timestamps by CPA id.

    Every inventory id is either upserted or unchanged; every repository id
    missing from the inventory is deleted.
    """
    plan = SyncPlan()
    for cpa_id in sorted(inventory_timestamps):
        if should_upsert(inventory_timestamps[cpa_id], repository_timestamps.get(cpa_id)):
            plan.to_upsert.append(cpa_id)
        else:
            plan.unchanged.append(cpa_id)
    plan.to_delete = sorted(set(repository_timestamps) - set(inventory_timestamps))
    return plan


def log_failure(exc: BaseException) -> None:
    """Log a failed sync run, surfacing transport error codes where available."""
    if isinstance(exc, httpx.HTTPStatusError):
        logger.error(
            "CPA repository responded with status [%d] to %s %s",
            exc.response.status_code,
            exc.request.method,
            exc.request.url,
            exc_info=exc,
        )
    elif isinstance(exc, paramiko.SSHException):
        logger.error("SSH error on file store: %s", exc, exc_info=exc)
    elif isinstance(exc, OSError) and exc.errno is not None:
        logger.error("File store error code [%d]: %s", exc.errno, exc.strerror, exc_info=exc)
    else:
        logger.error("Sync failed: %s", exc, exc_info=exc)


class CpaSyncService:
    """Activates due CPAs, then makes the CPA repository match the file store."""

    def __init__(
        self,
        repo_client: CpaRepoClient,
        file_store_factory: Callable[[], FileStore],
        activate_service: CpaActivateService | None = None,
    ) -> None:
        self.repo_client = repo_client
        self.file_store_factory = file_store_factory
        self.activate_service = activate_service

    async def sync(self) -> SyncResult:
        """Run one sync. Failures are logged once and re-raised."""
        try:
            async with self.file_store_factory() as store:
                return await self._sync(store)
        except Exception as exc:
            log_failure(exc)
            raise

    async def _activate(self, store: FileStore, result: SyncResult) -> None:
        if self.activate_service is None:
            logger.info("No CPA archive configured, skipping activation")
            return
        report: ActivationReport = await self.activate_service.activate_due(store)
        result.activated = report.activated
        result.activation_failures = report.failed

    async def _sync(self, store: FileStore) -> SyncResult:
        result = SyncResult()
        await self._activate(store, result)

        repository_timestamps = await self.repo_client.get_timestamps()
        inventory = await build_inventory(store)
        plan = compute_sync_plan(
            {cpa_id: entry.timestamp for cpa_id, entry in inventory.items()},
            repository_timestamps,
        )

        for cpa_id in plan.to_upsert:
            entry = inventory[cpa_id]
            logger.info("Upserting new/modified CPA: %s - %s", cpa_id, entry.timestamp)
            await self.repo_client.upsert(decompress(entry.content), entry.timestamp)
            result.upserted.append(cpa_id)

        for cpa_id in plan.unchanged:
            logger.debug(
                "Skipping upsert for unmodified CPA: %s - %s", cpa_id, inventory[cpa_id].timestamp
            )
        result.unchanged = plan.unchanged

        for cpa_id in plan.to_delete:
            logger.info("Deleting stale entry: %s - %s", cpa_id, repository_timestamps[cpa_id])
            await self.repo_client.delete(cpa_id)
            result.deleted.append(cpa_id)

        logger.info(
            "Sync done: %d upserted, %d deleted, %d unchanged, %d activated",
            len(result.upserted),
            len(result.deleted),
            len(result.unchanged),
            len(result.activated),
        )
        return result
