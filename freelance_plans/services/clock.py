"""Clock for window comparisons.

Responsibilities:
- Supply the current time as a timezone-aware UTC datetime
- Freeze time for tests
- Advance or set virtual time (forward only)
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from freelance_plans.logging_config import get_logger

logger = get_logger(__name__)


class Clock:
    """Time provider for the lifecycle engine and access gate.

    Runs on the system clock unless frozen. Once frozen, time only moves
    when advance() or set_time() is called.

    Args:
        frozen_at: optional aware datetime to freeze the clock at
    """

    def __init__(self, frozen_at: Optional[datetime] = None) -> None:
        # thread safety lock
        self._lock = threading.RLock()
        self._frozen_at: Optional[datetime] = None
        self._offset = timedelta(0)
        if frozen_at is not None:
            self._frozen_at = self._to_utc(frozen_at)

        logger.debug("clock initialized", frozen=self._frozen_at is not None)

    @staticmethod
    def _to_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("Clock times must be timezone-aware")
        return value.astimezone(timezone.utc)

    @property
    def is_frozen(self) -> bool:
        with self._lock:
            return self._frozen_at is not None

    def now(self) -> datetime:
        """Get the current time.

        Returns:
            Current (virtual) time as an aware UTC datetime.
        """
        with self._lock:
            if self._frozen_at is not None:
                return self._frozen_at
            return datetime.now(timezone.utc) + self._offset

    def advance(
            self,
            days: int = 0,
            hours: int = 0,
            minutes: int = 0,
            seconds: int = 0,
    ) -> dict:
        """Advance time (days, hours, minutes, seconds).

        Args:
            days: number of days to advance
            hours: number of hours to advance
            minutes: number of minutes to advance
            seconds: number of seconds to advance

        Returns:
            Dictionary with old_time and new_time

        Raises:
            ValueError: if any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0 or seconds < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed.")

        delta = timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)

        with self._lock:
            old_time = self.now()
            if self._frozen_at is not None:
                self._frozen_at += delta
            else:
                self._offset += delta
            new_time = self.now()

        logger.info(
            "time advanced",
            old_time=old_time.isoformat(),
            new_time=new_time.isoformat(),
            days=days,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
        )
        return {"old_time": old_time, "new_time": new_time}

    def set_time(self, target: datetime) -> dict:
        """Move time to a specific instant.

        Args:
            target: aware datetime to move to

        Returns:
            Dictionary with old_time and new_time

        Raises:
            ValueError: If target is naive or earlier than the current time
        """
        target = self._to_utc(target)
        with self._lock:
            old_time = self.now()

            # don't allow going backwards in time
            if target < old_time:
                raise ValueError(
                    f"cannot set time backwards, current: {old_time.isoformat()}, "
                    f"requested: {target.isoformat()}"
                )

            if self._frozen_at is not None:
                self._frozen_at = target
            else:
                self._offset += target - old_time

        logger.info("time set", old_time=old_time.isoformat(), new_time=target.isoformat())
        return {"old_time": old_time, "new_time": target}

    def reset(self) -> dict:
        """Return to the real system clock."""
        with self._lock:
            old_time = self.now()
            self._frozen_at = None
            self._offset = timedelta(0)
            new_time = self.now()

        logger.info("time reset", old_time=old_time.isoformat(), new_time=new_time.isoformat())
        return {"old_time": old_time, "new_time": new_time}


_clock_instance: Optional[Clock] = None
_clock_lock = threading.Lock()


def get_clock() -> Clock:
    global _clock_instance
    if _clock_instance is None:
        with _clock_lock:
            if _clock_instance is None:
                _clock_instance = Clock()
    return _clock_instance


def reset_clock(frozen_at: Optional[datetime] = None) -> Clock:
    global _clock_instance
    with _clock_lock:
        _clock_instance = Clock(frozen_at=frozen_at)
        return _clock_instance
