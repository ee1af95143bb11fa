"""Status change logging for subscriptions and plans.

Tracks transitions with before/after values for debugging and auditing.
Admin deletes are hard deletes, so the removal log line is the only trace
of a deleted subscription's last state.
"""

from typing import Any, Optional

from freelance_plans.logging_config import get_logger

logger = get_logger(__name__)


def log_subscription_status_change(
    subscription_id: int,
    user_id: int,
    old_status: Any,
    new_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log subscription status change.

    Args:
        subscription_id: Subscription row ID
        user_id: Owning freelancer ID
        old_status: Previous status value
        new_status: New status value
        reason: Reason for the change
        **extra_context: Additional context (plan_id, end_date, etc.)
    """
    logger.info(
        "subscription_status_changed",
        subscription_id=subscription_id,
        user_id=user_id,
        old_status=str(old_status),
        new_status=str(new_status),
        reason=reason,
        **extra_context,
    )


def log_subscription_window_change(
    subscription_id: int,
    user_id: int,
    old_end_date: Any,
    new_end_date: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a change of a subscription's end date."""
    logger.info(
        "subscription_window_changed",
        subscription_id=subscription_id,
        user_id=user_id,
        old_end_date=str(old_end_date) if old_end_date else None,
        new_end_date=str(new_end_date) if new_end_date else None,
        reason=reason,
        **extra_context,
    )


def log_subscription_removed(
    subscription_id: int,
    user_id: int,
    last_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a hard delete of a subscription row."""
    logger.warning(
        "subscription_removed",
        subscription_id=subscription_id,
        user_id=user_id,
        last_status=str(last_status),
        reason=reason,
        **extra_context,
    )


def log_plan_change(
    plan_id: int,
    action: str,
    **extra_context: Any,
) -> None:
    """Log a plan catalog change (created, updated, deleted)."""
    logger.info(
        "plan_changed",
        plan_id=plan_id,
        action=action,
        **extra_context,
    )
