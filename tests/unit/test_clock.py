"""Unit tests for the Clock service."""

from datetime import datetime, timedelta, timezone

import pytest

from freelance_plans.services.clock import Clock, get_clock, reset_clock


class TestClockBasics:
    """Tests for basic clock functionality."""

    def test_unfrozen_clock_tracks_real_time(self):
        """Unfrozen clock starts near the system time."""
        clock = Clock()
        diff = abs((clock.now() - datetime.now(timezone.utc)).total_seconds())
        assert diff < 1
        assert clock.is_frozen is False

    def test_now_is_timezone_aware_utc(self):
        assert Clock().now().tzinfo is not None
        assert Clock().now().utcoffset() == timedelta(0)

    def test_frozen_clock_does_not_move(self, t0):
        """Frozen time only changes when explicitly advanced."""
        clock = Clock(frozen_at=t0)
        assert clock.now() == t0
        assert clock.now() == t0
        assert clock.is_frozen is True

    def test_frozen_at_is_normalised_to_utc(self, t0):
        plus_two = timezone(timedelta(hours=2))
        clock = Clock(frozen_at=t0.astimezone(plus_two))
        assert clock.now() == t0
        assert clock.now().tzinfo == timezone.utc

    def test_naive_frozen_at_rejected(self):
        with pytest.raises(ValueError):
            Clock(frozen_at=datetime(2026, 1, 1))


class TestClockAdvance:
    """Tests for moving time forward."""

    def test_advance_days(self, clock, t0):
        result = clock.advance(days=30)
        assert clock.now() == t0 + timedelta(days=30)
        assert result["old_time"] == t0
        assert result["new_time"] == t0 + timedelta(days=30)

    def test_advance_mixed_units(self, clock, t0):
        clock.advance(days=2, hours=3, minutes=4, seconds=5)
        assert clock.now() == t0 + timedelta(days=2, hours=3, minutes=4, seconds=5)

    def test_advance_accumulates(self, clock, t0):
        clock.advance(days=1)
        clock.advance(days=1)
        assert clock.now() == t0 + timedelta(days=2)

    def test_advance_zero_keeps_time(self, clock, t0):
        clock.advance()
        assert clock.now() == t0

    @pytest.mark.parametrize("kwargs", [{"days": -1}, {"hours": -1}, {"minutes": -5}, {"seconds": -1}])
    def test_advance_backwards_rejected(self, clock, t0, kwargs):
        """Negative values are not allowed."""
        with pytest.raises(ValueError):
            clock.advance(**kwargs)
        assert clock.now() == t0

    def test_advance_unfrozen_clock_applies_offset(self):
        clock = Clock()
        clock.advance(days=10)
        expected = datetime.now(timezone.utc) + timedelta(days=10)
        assert abs((clock.now() - expected).total_seconds()) < 1


class TestClockSetTime:
    """Tests for jumping to a specific instant."""

    def test_set_time_forward(self, clock, t0):
        target = t0 + timedelta(days=45)
        result = clock.set_time(target)
        assert clock.now() == target
        assert result["old_time"] == t0

    def test_set_time_backwards_rejected(self, clock, t0):
        with pytest.raises(ValueError, match="backwards"):
            clock.set_time(t0 - timedelta(seconds=1))
        assert clock.now() == t0

    def test_set_time_naive_rejected(self, clock):
        with pytest.raises(ValueError):
            clock.set_time(datetime(2030, 1, 1))

    def test_reset_returns_to_system_time(self, clock):
        clock.reset()
        assert clock.is_frozen is False
        diff = abs((clock.now() - datetime.now(timezone.utc)).total_seconds())
        assert diff < 1


class TestClockSingleton:
    """Tests for the global clock instance."""

    def test_get_clock_returns_same_instance(self):
        reset_clock()
        assert get_clock() is get_clock()

    def test_reset_clock_can_freeze(self, t0):
        clock = reset_clock(frozen_at=t0)
        assert get_clock() is clock
        assert get_clock().now() == t0
        reset_clock()
