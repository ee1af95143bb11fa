"""Tests for subscription window arithmetic."""

from datetime import datetime, timedelta, timezone

import pytest

from freelance_plans.utils.subscription_window import (
    compute_window,
    duration_to_timedelta,
    remaining_days,
    window_entitles,
    window_is_open,
)

START = datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)


class TestComputeWindow:
    """Test compute_window function."""

    @pytest.mark.parametrize("days", [1, 7, 30, 365])
    def test_end_is_start_plus_duration_days(self, days):
        start, end = compute_window(START, days)
        assert start == START
        assert end - start == timedelta(days=days)

    def test_month_end_start_is_not_calendar_month(self):
        """Durations are day counts, not calendar months."""
        _, end = compute_window(START, 30)
        assert end == datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    def test_naive_start_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            compute_window(datetime(2026, 1, 1), 30)

    @pytest.mark.parametrize("days", [0, -1])
    def test_non_positive_duration_rejected(self, days):
        with pytest.raises(ValueError, match="positive"):
            compute_window(START, days)

    @pytest.mark.parametrize("days", [1.5, "30", True])
    def test_non_integer_duration_rejected(self, days):
        with pytest.raises(ValueError):
            duration_to_timedelta(days)


class TestRemainingDays:
    """Test remaining_days function."""

    def test_exact_days(self):
        assert remaining_days(START + timedelta(days=30), START) == 30

    def test_partial_day_rounds_up(self):
        assert remaining_days(START + timedelta(days=2, hours=1), START) == 3
        assert remaining_days(START + timedelta(seconds=1), START) == 1

    def test_past_end_is_zero(self):
        assert remaining_days(START - timedelta(days=1), START) == 0

    def test_end_equal_now_is_zero(self):
        assert remaining_days(START, START) == 0

    def test_missing_end_is_zero(self):
        assert remaining_days(None, START) == 0


class TestWindowPredicates:
    """Test the open-window and entitlement predicates."""

    def test_window_open_while_end_in_future(self):
        assert window_is_open(START, START + timedelta(days=1), START) is True

    def test_window_closed_once_end_reached(self):
        end = START + timedelta(days=1)
        assert window_is_open(START, end, end) is False

    def test_future_start_without_end_is_open(self):
        assert window_is_open(START + timedelta(days=3), None, START) is True

    def test_staged_row_without_dates_is_open(self):
        assert window_is_open(None, None, START) is True

    def test_entitles_through_end_instant(self):
        end = START + timedelta(days=1)
        assert window_entitles(START, end, end) is True
        assert window_entitles(START, end, end + timedelta(seconds=1)) is False

    def test_entitlement_needs_both_dates(self):
        assert window_entitles(None, START, START) is False
        assert window_entitles(START, None, START) is False
