"""Tests for datetime helpers."""

from datetime import UTC, datetime

import pytest

from cpasync.services.datetime_service import (
    format_reference_timestamp,
    instant_from_epoch,
    now_in_zone,
    parse_instant,
)


class TestInstants:
    def test_instant_from_epoch(self) -> None:
        assert instant_from_epoch(1735689600) == "2025-01-01T00:00:00Z"

    def test_instant_from_epoch_truncates_fraction(self) -> None:
        assert instant_from_epoch(1735689600.9) == "2025-01-01T00:00:00Z"

    def test_parse_instant_utc(self) -> None:
        result = parse_instant("2025-01-01T00:00:00Z")
        assert result == datetime(2025, 1, 1, tzinfo=UTC)

    def test_parse_instant_with_offset(self) -> None:
        result = parse_instant("2025-01-01T01:00:00+01:00")
        assert result == datetime(2025, 1, 1, tzinfo=UTC)

    def test_parse_instant_without_offset_is_utc(self) -> None:
        result = parse_instant("2025-01-01T00:00:00")
        assert result == datetime(2025, 1, 1, tzinfo=UTC)

    def test_parse_instant_fractional_seconds(self) -> None:
        result = parse_instant("2025-01-01T00:00:00.500Z")
        assert result > datetime(2025, 1, 1, tzinfo=UTC)

    def test_parse_instant_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_instant("not a date")

    def test_parse_instant_rejects_time_only(self) -> None:
        with pytest.raises(ValueError):
            parse_instant("12:00:00")

    def test_parse_instant_rejects_date_only(self) -> None:
        with pytest.raises(ValueError, match="Not an instant"):
            parse_instant("2025-01-01")


class TestLocalTime:
    def test_now_in_zone(self) -> None:
        result = now_in_zone("Europe/Oslo")
        assert result.tzinfo is not None
        assert result.utcoffset() is not None

    def test_format_reference_timestamp(self) -> None:
        dt = datetime(2025, 1, 23, 8, 5, 59, tzinfo=UTC)
        assert format_reference_timestamp(dt) == "202501230805"
