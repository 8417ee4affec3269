"""Datetime helpers: instants for reconciliation, local time for activation."""

from __future__ import annotations

from datetime import UTC, datetime

import pendulum

# Second-precision ISO-8601 instant, e.g. 2025-01-01T00:00:00Z
INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
# Minute-precision stamp used in promotion reference tokens
REFERENCE_FORMAT = "%Y%m%d%H%M"


def instant_from_epoch(seconds: int | float) -> str:
    """Format epoch seconds as a second-precision UTC instant string."""
    return datetime.fromtimestamp(int(seconds), UTC).strftime(INSTANT_FORMAT)


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant string into an aware datetime.

    Values without an offset are read as UTC. Raises ValueError for input
    that is not a date-time.
    """
    # exact=True keeps date-only and time-only values from being widened to a DateTime
    parsed = pendulum.parse(value.strip(), tz="UTC", exact=True)
    if not isinstance(parsed, pendulum.DateTime):
        msg = f"Not an instant: {value!r}"
        raise ValueError(msg)
    return parsed


def now_in_zone(timezone_name: str) -> datetime:
    """Return the current time in the given IANA timezone."""
    return pendulum.now(timezone_name)


def format_reference_timestamp(dt: datetime) -> str:
    """Format a datetime as ``yyyyMMddHHmm``."""
    return dt.strftime(REFERENCE_FORMAT)
