"""Quarantine release scheduling: which quarantined CPA files are due now.

Release stamps carry no year, so two interpretations exist:

- ``exact_day``: a file is only considered on its own calendar day in the
  activation timezone, and is due once the encoded hour and minute have
  passed. Files whose day has passed are never activated.
- ``month_rollover``: assumes activation runs at least monthly. A stamp in
  the current month is due once passed; a stamp in the previous month is
  due (the run just after a month boundary); anything else is read as next
  year and is not due.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from enum import StrEnum
from typing import TYPE_CHECKING

from cpasync.exceptions import FilenameParseError
from cpasync.services.filename_service import is_quarantine_filename, parse_release_fields

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cpasync.filestore.base import FileStoreEntry

logger = logging.getLogger(__name__)


class DuePolicy(StrEnum):
    """How a year-less release stamp is mapped onto the calendar."""

    EXACT_DAY = "exact_day"
    MONTH_ROLLOVER = "month_rollover"


def _is_due_exact_day(filename: str, now: datetime) -> bool:
    release = parse_release_fields(filename)
    if release.month != now.month or release.day != now.day:
        return False
    current = time(now.hour, now.minute, 1)
    return current >= time(release.hour, release.minute)


def _is_due_month_rollover(filename: str, now: datetime) -> bool:
    release = parse_release_fields(filename)
    if release.month != now.month:
        previous_month = 12 if now.month == 1 else now.month - 1
        return release.month == previous_month
    scheduled = now.replace(
        day=release.day,
        hour=release.hour,
        minute=release.minute,
        second=0,
        microsecond=0,
    )
    return scheduled <= now


def is_activation_due(
    filename: str,
    now: datetime,
    policy: DuePolicy = DuePolicy.EXACT_DAY,
) -> bool:
    """Return True if the quarantine file's release moment has passed.

    ``now`` must already be expressed in the activation timezone. Malformed
    stamps and out-of-range fields are never due.
    """
    try:
        if policy == DuePolicy.MONTH_ROLLOVER:
            return _is_due_month_rollover(filename, now)
        return _is_due_exact_day(filename, now)
    except FilenameParseError as exc:
        logger.warning("Cannot read release time of %s: %s", filename, exc.reason)
        return False
    except ValueError as exc:
        logger.warning("Release time of %s is out of range: %s", filename, exc)
        return False


def select_due_entries(
    entries: Iterable[FileStoreEntry],
    now: datetime,
    policy: DuePolicy = DuePolicy.EXACT_DAY,
) -> list[FileStoreEntry]:
    """Filter a file-store listing down to quarantine files due for activation.

    Every quarantine file is logged, so files with a mistyped stamp (which
    will never be activated) show up in the logs.
    """
    due: list[FileStoreEntry] = []
    for entry in entries:
        if not is_quarantine_filename(entry.filename):
            continue
        if is_activation_due(entry.filename, now, policy):
            logger.info("%s is due to be activated", entry.filename)
            due.append(entry)
        else:
            logger.info("%s is in quarantine, but not yet due to be activated", entry.filename)
    return due
