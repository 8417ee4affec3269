"""Application-level exception types.

Convention:
- ``FilenameParseError`` / missing ids in content: per-entry problems. Callers
  log them and skip the entry; they never abort a run.
- ``DuplicateDocumentIdError``: an inventory invariant violation. It aborts the
  whole sync run before anything is written to the CPA repository.
- ``MissingLiveRecordError``: raised by the archive repository when a promoted
  generation has no live row to propagate onto.
- ``RepositoryDataError``: the CPA repository returned unusable data. It aborts
  the sync run like a transport failure.
"""

from __future__ import annotations


class FilenameParseError(ValueError):
    """Raised when a quarantine filename does not follow the release grammar."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class DuplicateDocumentIdError(Exception):
    """Raised when two file-store entries carry the same CPA id."""

    def __init__(self, cpa_id: str, first_filename: str, second_filename: str) -> None:
        super().__init__(
            f"File store contains duplicate CPA ID {cpa_id!r} "
            f"({first_filename}, {second_filename}). Aborting sync."
        )
        self.cpa_id = cpa_id
        self.filenames = (first_filename, second_filename)


class MissingLiveRecordError(LookupError):
    """Raised when no live CPA row exists for a promoted CPA id."""

    def __init__(self, cpa_id: str) -> None:
        super().__init__(f"No live CPA record exists for {cpa_id!r}")
        self.cpa_id = cpa_id


class RepositoryDataError(Exception):
    """Raised when the CPA repository returns data that cannot be used."""
