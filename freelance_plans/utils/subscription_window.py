"""Subscription window arithmetic.

Plan durations are whole days. A window is computed once, at activation,
as ``[start_date, start_date + duration days]`` and never recomputed when
the plan is later edited.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def _require_aware(value: datetime, name: str) -> None:
    if value.tzinfo is None:
        raise ValueError(f"{name} must be timezone-aware")


def duration_to_timedelta(duration_days: int) -> timedelta:
    """Convert a plan duration in days to a timedelta.

    Raises:
        ValueError: If the duration is not a positive integer
    """
    if isinstance(duration_days, bool) or not isinstance(duration_days, int):
        raise ValueError(f"Plan duration must be an integer number of days, got: {duration_days!r}")
    if duration_days <= 0:
        raise ValueError(f"Plan duration must be positive, got: {duration_days}")
    return timedelta(days=duration_days)


def compute_window(start_date: datetime, duration_days: int) -> tuple[datetime, datetime]:
    """Compute the (start_date, end_date) window for an activation.

    Args:
        start_date: Timezone-aware window start
        duration_days: Plan duration in days

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        ValueError: If start_date is naive or the duration is invalid

    Examples:
        >>> compute_window(datetime(2026, 1, 1, tzinfo=timezone.utc), 30)[1]
        datetime.datetime(2026, 1, 31, 0, 0, tzinfo=datetime.timezone.utc)
    """
    _require_aware(start_date, "start_date")
    return start_date, start_date + duration_to_timedelta(duration_days)


def remaining_days(end_date: Optional[datetime], now: datetime) -> int:
    """Whole days left until end_date, rounded up; 0 once it has passed."""
    if end_date is None:
        return 0
    seconds_left = (end_date - now).total_seconds()
    if seconds_left <= 0:
        return 0
    return math.ceil(seconds_left / SECONDS_PER_DAY)


def window_is_open(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    now: datetime,
) -> bool:
    """Return True while a window still blocks a new subscription.

    Open means ``end_date > now`` or ``start_date > now``. A staged row with
    no dates yet is open until it is activated or removed.
    """
    if start_date is None:
        return True
    if end_date is not None and end_date > now:
        return True
    return start_date > now


def window_entitles(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    now: datetime,
) -> bool:
    """Return True if the window grants feature access at ``now``."""
    return start_date is not None and end_date is not None and end_date >= now
