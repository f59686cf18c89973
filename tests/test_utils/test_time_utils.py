"""Tests for weekly reset boundary arithmetic in roster_audit/utils/time_utils.py."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from roster_audit.utils.time_utils import (
    ensure_utc,
    is_stale,
    reset_boundary,
    reset_date,
    to_epoch_ms,
)

UTC = timezone.utc


class TestResetBoundary:
    def test_after_reset_on_reset_day_is_today(self):
        now = datetime(2025, 3, 12, 12, 0, tzinfo=UTC)  # Wednesday
        assert reset_boundary(now) == datetime(2025, 3, 12, 8, 0, tzinfo=UTC)

    def test_before_reset_on_reset_day_is_previous_week(self):
        now = datetime(2025, 3, 12, 7, 59, 59, tzinfo=UTC)
        assert reset_boundary(now) == datetime(2025, 3, 5, 8, 0, tzinfo=UTC)

    def test_exactly_at_reset_is_fixed_point(self):
        boundary = datetime(2025, 3, 12, 8, 0, tzinfo=UTC)
        assert reset_boundary(boundary) == boundary

    def test_mid_week(self):
        now = datetime(2025, 3, 15, 23, 0, tzinfo=UTC)  # Saturday
        assert reset_boundary(now) == datetime(2025, 3, 12, 8, 0, tzinfo=UTC)

    def test_day_before_reset(self):
        now = datetime(2025, 3, 18, 20, 0, tzinfo=UTC)  # Tuesday
        assert reset_boundary(now) == datetime(2025, 3, 12, 8, 0, tzinfo=UTC)

    def test_naive_input_treated_as_utc(self):
        assert reset_boundary(datetime(2025, 3, 12, 12, 0)) == datetime(
            2025, 3, 12, 8, 0, tzinfo=UTC
        )

    def test_other_timezone_normalized(self):
        # 2025-03-12 09:30 at UTC+3 is 06:30 UTC, before reset.
        tz = timezone(timedelta(hours=3))
        now = datetime(2025, 3, 12, 9, 30, tzinfo=tz)
        assert reset_boundary(now) == datetime(2025, 3, 5, 8, 0, tzinfo=UTC)

    def test_custom_weekday_and_hour(self):
        # US reset: Tuesday 15:00 UTC.
        now = datetime(2025, 3, 12, 12, 0, tzinfo=UTC)
        assert reset_boundary(now, weekday=1, hour=15) == datetime(
            2025, 3, 11, 15, 0, tzinfo=UTC
        )

    @pytest.mark.parametrize("hours", range(0, 24 * 14, 5))
    def test_boundary_properties_over_two_weeks(self, hours):
        now = datetime(2025, 3, 10, 0, 0, tzinfo=UTC) + timedelta(hours=hours, minutes=17)
        boundary = reset_boundary(now)
        assert boundary.weekday() == 2
        assert boundary.hour == 8 and boundary.minute == 0
        assert boundary <= now
        assert now - boundary < timedelta(days=7)
        assert reset_boundary(boundary) == boundary

    @pytest.mark.parametrize("weekday,hour", [(7, 8), (-1, 8), (2, 24), (2, -1)])
    def test_invalid_parameters_raise(self, weekday, hour):
        with pytest.raises(ValueError):
            reset_boundary(datetime(2025, 3, 12, tzinfo=UTC), weekday=weekday, hour=hour)


class TestResetDate:
    def test_reset_date_is_boundary_date(self):
        assert reset_date(datetime(2025, 3, 14, tzinfo=UTC)) == date(2025, 3, 12)

    def test_reset_date_before_cutover(self):
        assert reset_date(datetime(2025, 3, 12, 3, 0, tzinfo=UTC)) == date(2025, 3, 5)


class TestHelpers:
    def test_to_epoch_ms(self):
        assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)) == 1000

    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2025, 1, 1)).tzinfo == UTC

    def test_is_stale_never_enriched(self):
        assert is_stale(None, datetime(2025, 1, 1, tzinfo=UTC), timedelta(hours=1))

    def test_is_stale_recent(self):
        now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        assert not is_stale(now - timedelta(minutes=59), now, timedelta(hours=1))

    def test_is_stale_old(self):
        now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        assert is_stale(now - timedelta(minutes=61), now, timedelta(hours=1))

    def test_is_stale_exactly_threshold_is_not_due(self):
        now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        assert not is_stale(now - timedelta(hours=1), now, timedelta(hours=1))
