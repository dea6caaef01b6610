"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone

import pytest

from marketplace.utils.timestamps import (
    ensure_utc,
    format_timestamp,
    from_storage,
    parse_iso_datetime,
    to_storage,
    utc_now,
)


class TestUtcNow:
    """Tests for utc_now function."""

    def test_utc_now_returns_utc_datetime(self):
        now = utc_now()

        assert now.tzinfo == timezone.utc
        assert isinstance(now, datetime)

    def test_utc_now_is_recent(self):
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= now <= after


class TestEnsureUtc:
    """Tests for ensure_utc function."""

    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_treated_as_utc(self):
        result = ensure_utc(datetime(2026, 10, 4, 12, 0))

        assert result == datetime(2026, 10, 4, 12, 0, tzinfo=timezone.utc)

    def test_other_timezone_converted(self):
        plus_two = timezone(timedelta(hours=2))

        result = ensure_utc(datetime(2026, 10, 4, 14, 0, tzinfo=plus_two))

        assert result.tzinfo == timezone.utc
        assert result.hour == 12


class TestParseIsoDatetime:
    """Tests for parse_iso_datetime function."""

    @pytest.mark.parametrize(
        "value",
        [
            "2026-10-04T12:00:00Z",
            "2026-10-04T12:00:00+00:00",
            "2026-10-04T14:00:00+02:00",
            "2026-10-04T12:00:00",
            " 2026-10-04T12:00:00Z ",
        ],
    )
    def test_valid(self, value):
        assert parse_iso_datetime(value) == datetime(2026, 10, 4, 12, 0, tzinfo=timezone.utc)

    def test_date_only(self):
        assert parse_iso_datetime("2026-10-04") == datetime(2026, 10, 4, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "   ", "yesterday", "2026-13-45"])
    def test_invalid_returns_none(self, value):
        assert parse_iso_datetime(value) is None


class TestFormatTimestamp:
    """Tests for format_timestamp function."""

    def test_format(self):
        dt = datetime(2026, 10, 4, 12, 0, 5, 999999, tzinfo=timezone.utc)

        assert format_timestamp(dt) == "2026-10-04T12:00:05Z"

    def test_converts_to_utc(self):
        dt = datetime(2026, 10, 4, 7, 0, tzinfo=timezone(timedelta(hours=-5)))

        assert format_timestamp(dt) == "2026-10-04T12:00:00Z"

    def test_none(self):
        assert format_timestamp(None) is None


class TestStorageFormat:
    """Tests for the fixed-width storage representation."""

    def test_to_storage(self):
        dt = datetime(2026, 10, 4, 12, 0, tzinfo=timezone.utc)

        assert to_storage(dt) == "2026-10-04T12:00:00.000000Z"

    def test_to_storage_none(self):
        assert to_storage(None) is None

    def test_from_storage(self):
        result = from_storage("2026-10-04T12:00:00.250000Z")

        assert result == datetime(2026, 10, 4, 12, 0, 0, 250000, tzinfo=timezone.utc)

    def test_from_storage_without_fraction(self):
        assert from_storage("2026-10-04T12:00:00Z") == datetime(
            2026, 10, 4, 12, 0, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("value", [None, ""])
    def test_from_storage_empty(self, value):
        assert from_storage(value) is None

    def test_lexical_order_matches_chronological_order(self):
        earlier = datetime(2026, 10, 4, 9, 59, 59, 999999, tzinfo=timezone.utc)
        later = datetime(2026, 10, 4, 10, 0, tzinfo=timezone.utc)

        assert to_storage(earlier) < to_storage(later)
