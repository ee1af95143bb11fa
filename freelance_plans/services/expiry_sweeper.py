"""Periodic expiry sweep.

Runs SubscriptionEngine.expire_overdue() on a fixed interval as an asyncio
task owned by the application lifespan. The sweep itself is blocking
database work, so it runs in a worker thread.
"""

import asyncio
from typing import Optional

from freelance_plans.database import StorageUnavailableError
from freelance_plans.logging_config import get_logger
from freelance_plans.services.subscription_engine import SubscriptionEngine

logger = get_logger(__name__)


class ExpirySweeper:
    """Background task flipping overdue active subscriptions to expired.

    Args:
        engine: Subscription engine to sweep with
        interval_seconds: Seconds between sweeps; 0 disables the sweeper
    """

    def __init__(self, engine: SubscriptionEngine, interval_seconds: float):
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        self._engine = engine
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.sweeps_completed = 0

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> list[int]:
        """Run one sweep.

        Returns:
            IDs of subscriptions that were expired. A failed sweep is logged
            and returns an empty list.
        """
        try:
            expired = await asyncio.to_thread(self._engine.expire_overdue)
        except StorageUnavailableError as e:
            logger.warning("expiry_sweep_skipped", error=str(e))
            return []
        except Exception as e:
            logger.error("expiry_sweep_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            return []

        self.sweeps_completed += 1
        return [subscription.id for subscription in expired]

    async def _run(self) -> None:
        logger.info("expiry_sweeper_started", interval_seconds=self._interval)
        while True:
            await self.sweep_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if not self.enabled:
            logger.info("expiry_sweeper_disabled")
            return
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="expiry-sweeper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("expiry_sweeper_stopped", sweeps_completed=self.sweeps_completed)
