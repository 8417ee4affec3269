"""Quarantine filename grammar.

A CPA waiting for activation lives in a file named

    MMddHHmm_<cpa id with dots for colons>._R_<payload>._R_.qrntn

where the leading stamp is the local activation month, day, hour and minute
(no year). Example: ``01230800_nav.60120._R_Zm9ybnllbHNl._R_.qrntn`` is
activated on January 23 at 08:00 as ``nav.60120.xml`` (CPA id ``nav:60120``),
and was archived before activation as ``01230800_nav:60120``.
"""

from __future__ import annotations

from typing import NamedTuple

from cpasync.exceptions import FilenameParseError

QUARANTINE_SUFFIX = ".qrntn"
DOCUMENT_SUFFIX = ".xml"
PAYLOAD_MARKER = "._R_"

_STAMP_LENGTH = 8
_SEPARATOR = "_"
_MIN_ID_LENGTH = 8


class ReleaseFields(NamedTuple):
    """Activation moment encoded at the start of a quarantine filename."""

    month: int
    day: int
    hour: int
    minute: int

    def stamp(self) -> str:
        return f"{self.month:02d}{self.day:02d}{self.hour:02d}{self.minute:02d}"


def is_quarantine_filename(filename: str) -> bool:
    return filename.endswith(QUARANTINE_SUFFIX)


def is_document_filename(filename: str) -> bool:
    return filename.endswith(DOCUMENT_SUFFIX)


def _require_stamp_prefix(filename: str) -> None:
    if len(filename) <= _STAMP_LENGTH or filename[_STAMP_LENGTH] != _SEPARATOR:
        raise FilenameParseError(
            filename, "does not start with 8-character timestamp and underscore"
        )


def _as_document_filename(cpa_part: str) -> str:
    if cpa_part.endswith("."):
        return cpa_part + "xml"
    return cpa_part + DOCUMENT_SUFFIX


def parse_release_fields(filename: str) -> ReleaseFields:
    """Parse the ``MMddHHmm`` stamp of a quarantine filename.

    Only the layout is checked; values such as month 13 are returned as-is.
    """
    _require_stamp_prefix(filename)
    stamp = filename[:_STAMP_LENGTH]
    # str.isdigit() accepts non-ASCII digits
    if not (stamp.isascii() and stamp.isdigit()):
        raise FilenameParseError(filename, f"timestamp {stamp!r} is not numeric")
    return ReleaseFields(
        month=int(stamp[0:2]),
        day=int(stamp[2:4]),
        hour=int(stamp[4:6]),
        minute=int(stamp[6:8]),
    )


def extract_canonical_id(filename: str) -> str:
    """Return the file name the CPA gets once activated.

    ``01230800_nav.60120._R_Zm9ybnllbHNl._R_.qrntn`` -> ``nav.60120.xml``
    """
    _require_stamp_prefix(filename)
    from_start = filename[_STAMP_LENGTH + 1 :]
    end = from_start.find(_SEPARATOR)
    if end < _MIN_ID_LENGTH:
        raise FilenameParseError(
            filename, "does not contain a proper CPA ID between first and second underscore"
        )
    return _as_document_filename(from_start[:end])


def extract_raw_id_segment(filename: str) -> str:
    """Return the stamped file name the CPA was archived under while quarantined.

    ``01230800_nav.60120._R_Zm9ybnllbHNl._R_.qrntn`` -> ``01230800_nav.60120.xml``
    """
    _require_stamp_prefix(filename)
    end = filename.find(PAYLOAD_MARKER)
    if end < _MIN_ID_LENGTH:
        raise FilenameParseError(filename, f"does not contain the {PAYLOAD_MARKER} marker")
    return _as_document_filename(filename[:end])


def document_id_from_filename(filename: str) -> str:
    """Convert a CPA file name to its CPA id (``nav.60120.xml`` -> ``nav:60120``)."""
    return filename.removesuffix(DOCUMENT_SUFFIX).replace(".", ":")


def format_quarantine_filename(release: ReleaseFields, cpa_id: str, payload: str) -> str:
    """Build a quarantine filename for ``cpa_id`` released at ``release``."""
    cpa_part = cpa_id.replace(":", ".")
    return (
        f"{release.stamp()}{_SEPARATOR}{cpa_part}"
        f"{PAYLOAD_MARKER}{payload}{PAYLOAD_MARKER}{QUARANTINE_SUFFIX}"
    )
