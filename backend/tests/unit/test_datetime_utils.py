"""
Unit tests for datetime utilities.

Tests UTC normalization and elapsed time helpers.
"""

from datetime import datetime, timezone, timedelta

from utils.datetime_utils import elapsed_ms, ensure_utc, utc_now


class TestUtcNow:

    def test_utc_now_returns_timezone_aware_datetime(self):
        """Test that utc_now returns a UTC-aware datetime."""
        now = utc_now()

        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)


class TestEnsureUtc:
    """Test ensure_utc function."""

    def test_none_passes_through(self):
        assert ensure_utc(None) is None

    def test_naive_datetime_is_treated_as_utc(self):
        """Naive values read back from SQLite are already UTC."""
        naive = datetime(2026, 3, 1, 12, 30)

        result = ensure_utc(naive)

        assert result.tzinfo == timezone.utc
        assert result.hour == 12

    def test_other_timezone_is_converted(self):
        taipei = timezone(timedelta(hours=8))
        local = datetime(2026, 3, 1, 8, 0, tzinfo=taipei)

        result = ensure_utc(local)

        assert result.tzinfo == timezone.utc
        assert result.hour == 0


class TestElapsedMs:

    def test_elapsed_between_aware_and_naive(self):
        start = datetime(2026, 3, 1, 12, 0, 0)
        end = datetime(2026, 3, 1, 12, 0, 2, 500000, tzinfo=timezone.utc)

        assert elapsed_ms(start, end) == 2500

    def test_missing_endpoint(self):
        assert elapsed_ms(None, utc_now()) is None
        assert elapsed_ms(utc_now(), None) is None
