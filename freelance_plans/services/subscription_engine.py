"""Subscription lifecycle state machine.

Responsibilities:
- Admit new subscriptions (one open window per freelancer)
- Compute activation windows from plan durations
- Stage and activate admin-assigned subscriptions
- Handle self-service cancellation
- Apply admin overrides (update, hard delete)
- Expire subscriptions whose window has elapsed

States: pending_start -> active -> cancelled | expired. Admin update and
admin delete bypass the edges.
"""

import threading
from datetime import datetime
from typing import Optional

from freelance_plans.logging_config import get_logger
from freelance_plans.models.subscription import (
    Subscription,
    SubscriptionDetail,
    SubscriptionStatus,
    SubscriptionStatusView,
    can_transition,
)
from freelance_plans.models.user import Role
from freelance_plans.repositories.plan_catalog import (
    PlanCatalog,
    PlanNotFoundError,
    get_plan_catalog,
)
from freelance_plans.repositories.subscription_store import (
    SubscriptionNotFoundError,
    SubscriptionStore,
    get_subscription_store,
)
from freelance_plans.repositories.user_repository import (
    UserNotFoundError,
    UserRepository,
    get_user_repository,
)
from freelance_plans.services.clock import Clock, get_clock
from freelance_plans.utils.subscription_window import (
    compute_window,
    remaining_days,
    window_entitles,
)

logger = get_logger(__name__)

__all__ = [
    "SubscriptionEngine",
    "SubscriptionError",
    "AlreadySubscribedError",
    "NoActiveSubscriptionError",
    "InvalidSubscriptionStateError",
    "InvalidUserRoleError",
    "PlanNotFoundError",
    "SubscriptionNotFoundError",
    "UserNotFoundError",
    "get_subscription_engine",
    "reset_subscription_engine",
]


class SubscriptionError(Exception):
    """Base exception for subscription errors."""

    pass


class AlreadySubscribedError(SubscriptionError):
    """Raised when the freelancer already holds an open subscription window."""

    def __init__(self, existing: Subscription):
        self.subscription_id = existing.id
        self.status = existing.status
        self.expires_at: Optional[datetime] = existing.expires_at
        if self.expires_at is not None:
            message = f"You already have an active subscription until {self.expires_at.date().isoformat()}"
        else:
            message = "You already have a subscription waiting to be activated"
        super().__init__(message)


class NoActiveSubscriptionError(SubscriptionError):
    """Raised when cancelling without an active subscription."""

    def __init__(self, user_id: int):
        super().__init__("No active subscription found")
        self.user_id = user_id


class InvalidSubscriptionStateError(SubscriptionError):
    """Raised when an operation is invalid for the current subscription status."""

    pass


class InvalidUserRoleError(SubscriptionError):
    """Raised when assigning a plan to a user who is not a freelancer."""

    pass


class SubscriptionEngine:
    """Subscription lifecycle management engine.

    Every admission (check for an open window, then insert) runs inside the
    store's per-user admission lock, so concurrent subscribes for the same
    freelancer are serialised and at most one succeeds.
    """

    def __init__(
            self,
            subscription_store: Optional[SubscriptionStore] = None,
            plan_catalog: Optional[PlanCatalog] = None,
            user_repository: Optional[UserRepository] = None,
            clock: Optional[Clock] = None,
    ):
        """Initialize subscription engine.

        Args:
            subscription_store: Subscription storage (defaults to global instance)
            plan_catalog: Plan lookup (defaults to global instance)
            user_repository: User lookup (defaults to global instance)
            clock: Time provider (defaults to global instance)
        """
        self.store = subscription_store or get_subscription_store()
        self.plans = plan_catalog or get_plan_catalog()
        self.users = user_repository or get_user_repository()
        self.clock = clock or get_clock()

        logger.info("subscription_engine_initialized")

    def subscribe(self, user_id: int, plan_id: int) -> Subscription:
        """Subscribe a freelancer to a plan, activating it immediately.

        Args:
            user_id: Freelancer user ID
            plan_id: Plan ID

        Returns:
            Created active Subscription with end_date = start_date + plan duration

        Raises:
            PlanNotFoundError: If plan_id is not in the catalog
            UserNotFoundError: If the user is missing or deleted
            AlreadySubscribedError: If the user holds an open window
        """
        plan = self.plans.get_plan(plan_id)
        self.users.get(user_id)

        with self.store.admission(user_id) as session:
            now = self.clock.now()
            self.store.expire_overdue(now, user_id=user_id, session=session)

            existing = self.store.find_overlapping(user_id, now, session=session)
            if existing is not None:
                logger.info(
                    "subscribe_rejected",
                    user_id=user_id,
                    plan_id=plan_id,
                    existing_subscription_id=existing.id,
                    existing_status=str(existing.status),
                )
                raise AlreadySubscribedError(existing)

            start_date, end_date = compute_window(now, plan.duration)
            subscription = self.store.insert(
                user_id=user_id,
                plan_id=plan.id,
                start_date=start_date,
                end_date=end_date,
                status=SubscriptionStatus.ACTIVE,
                activated_at=now,
                session=session,
            )

        logger.info(
            "subscription_created",
            subscription_id=subscription.id,
            user_id=user_id,
            plan_id=plan.id,
            duration_days=plan.duration,
            end_date=end_date.isoformat(),
        )
        return subscription

    def assign(self, user_id: int, plan_id: int) -> Subscription:
        """Stage a plan for a freelancer (admin).

        The subscription is stored as pending_start with no dates; its
        window starts when an admin activates it.

        Raises:
            UserNotFoundError: If the user is missing or deleted
            InvalidUserRoleError: If the user is not a freelancer
            PlanNotFoundError: If plan_id is not in the catalog
            AlreadySubscribedError: If the user holds an open window
        """
        user = self.users.get(user_id)
        if user.role != Role.FREELANCER:
            raise InvalidUserRoleError(f"User {user_id} is not a freelancer")
        plan = self.plans.get_plan(plan_id)

        with self.store.admission(user_id) as session:
            now = self.clock.now()
            self.store.expire_overdue(now, user_id=user_id, session=session)

            existing = self.store.find_overlapping(user_id, now, session=session)
            if existing is not None:
                raise AlreadySubscribedError(existing)

            subscription = self.store.insert(
                user_id=user_id,
                plan_id=plan.id,
                start_date=None,
                end_date=None,
                status=SubscriptionStatus.PENDING_START,
                session=session,
            )

        logger.info(
            "subscription_assigned",
            subscription_id=subscription.id,
            user_id=user_id,
            plan_id=plan.id,
        )
        return subscription

    def activate(self, subscription_id: int, start_date: Optional[datetime] = None) -> Subscription:
        """Activate a staged subscription (admin).

        Args:
            subscription_id: pending_start subscription to activate
            start_date: Window start, defaults to now

        Returns:
            Active Subscription with its window computed from the plan's
            current duration

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist
            InvalidSubscriptionStateError: If it is not pending_start
        """
        owner_id = self.store.get(subscription_id).freelancer_id

        with self.store.admission(owner_id) as session:
            subscription = self.store.get(subscription_id, session=session)
            if not can_transition(subscription.status, SubscriptionStatus.ACTIVE):
                raise InvalidSubscriptionStateError(
                    f"Subscription {subscription_id} is {subscription.status} and cannot be activated"
                )

            plan = self.plans.get_plan(subscription.plan_id, session=session)
            now = self.clock.now()
            window_start, window_end = compute_window(start_date or now, plan.duration)
            subscription = self.store.set_status(
                subscription_id,
                SubscriptionStatus.ACTIVE,
                session=session,
                reason="admin_activate",
                start_date=window_start,
                end_date=window_end,
                activated_at=now,
            )

        return subscription

    def cancel(self, user_id: int) -> Subscription:
        """Cancel the caller's active subscription.

        Raises:
            NoActiveSubscriptionError: If the user has no active subscription;
                repeated calls keep raising it
        """
        with self.store.admission(user_id) as session:
            subscription = self.store.cancel_active(user_id, session=session)
            if subscription is None:
                raise NoActiveSubscriptionError(user_id)

        logger.info("subscription_cancelled", subscription_id=subscription.id, user_id=user_id)
        return subscription

    def admin_delete(self, subscription_id: int) -> None:
        """Hard-delete a subscription regardless of its status.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist
        """
        if not self.store.delete_by_id(subscription_id, reason="admin_delete"):
            raise SubscriptionNotFoundError(subscription_id)

    def admin_update(
            self,
            subscription_id: int,
            status: Optional[SubscriptionStatus] = None,
            end_date: Optional[datetime] = None,
    ) -> Subscription:
        """Override status and/or end_date without transition checks.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist
        """
        return self.store.update_fields(subscription_id, status=status, end_date=end_date)

    def expire_overdue(self) -> list[Subscription]:
        """Expire every active subscription whose end_date has passed."""
        now = self.clock.now()
        expired = self.store.expire_overdue(now)
        logger.info("expiry_sweep_completed", expired_count=len(expired), swept_at=now.isoformat())
        return expired

    def get_status(self, user_id: int) -> SubscriptionStatusView:
        """Describe the freelancer's most recent subscription.

        An active row whose end_date has passed is reported as expired even
        before the sweep has stored that.
        """
        latest = self.store.find_latest(user_id)
        if latest is None:
            return SubscriptionStatusView(status="none", remaining_days=0, status_message="")

        now = self.clock.now()
        status = latest.status
        if status == SubscriptionStatus.PENDING_START:
            days = latest.plan_duration or 0
            message = "Starts when activated"
        elif status == SubscriptionStatus.CANCELLED:
            days = 0
            message = "Subscription cancelled"
        elif window_entitles(latest.start_date, latest.end_date, now):
            days = remaining_days(latest.end_date, now)
            message = f"{days} days remaining"
        else:
            status = SubscriptionStatus.EXPIRED
            days = 0
            message = "Subscription expired"

        return SubscriptionStatusView(
            status=status.value,
            remaining_days=days,
            status_message=message,
            subscription=latest,
        )

    def list_subscriptions(self, status: Optional[SubscriptionStatus] = None) -> list[SubscriptionDetail]:
        """List all subscriptions, optionally filtered by status."""
        return self.store.list_all(status=status)

    def list_plan_subscribers(self, plan_id: int) -> list[SubscriptionDetail]:
        """List subscriptions of one plan.

        Raises:
            PlanNotFoundError: If plan_id is not in the catalog
        """
        self.plans.get_plan(plan_id)
        return self.store.list_by_plan(plan_id)


# Global engine instance
_engine_instance: Optional[SubscriptionEngine] = None
_engine_lock = threading.Lock()


def get_subscription_engine() -> SubscriptionEngine:
    """Get global subscription engine instance (singleton).

    Returns:
        SubscriptionEngine instance
    """
    global _engine_instance
    if _engine_instance is None:
        with _engine_lock:
            if _engine_instance is None:
                _engine_instance = SubscriptionEngine()
    return _engine_instance


def reset_subscription_engine() -> None:
    global _engine_instance
    with _engine_lock:
        _engine_instance = None
