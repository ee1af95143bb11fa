"""Utility functions and helpers for the subscription service."""

from freelance_plans.utils.subscription_window import (
    SECONDS_PER_DAY,
    compute_window,
    duration_to_timedelta,
    remaining_days,
    window_entitles,
    window_is_open,
)

__all__ = [
    "SECONDS_PER_DAY",
    "compute_window",
    "duration_to_timedelta",
    "remaining_days",
    "window_entitles",
    "window_is_open",
]
