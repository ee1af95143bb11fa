"""Access policy gate - derives subscription entitlement.

Entitlement is stricter than the admission check: only an ``active`` row
with a start date and an end date at or after now entitles. The end date is
re-checked on every call, so a row the expiry sweep has not reached yet
never grants access.
"""

import threading
from typing import Optional

from pydantic import BaseModel, Field

from freelance_plans.logging_config import get_logger
from freelance_plans.models.subscription import Subscription
from freelance_plans.models.user import Role
from freelance_plans.repositories.subscription_store import (
    SubscriptionStore,
    get_subscription_store,
)
from freelance_plans.repositories.user_repository import (
    UserRepository,
    get_user_repository,
)
from freelance_plans.services.clock import Clock, get_clock
from freelance_plans.utils.subscription_window import remaining_days

logger = get_logger(__name__)

# Reasons an AccessDecision can deny access
USER_NOT_FOUND = "user_not_found"
EMAIL_NOT_VERIFIED = "email_not_verified"
NO_ACTIVE_SUBSCRIPTION = "no_active_subscription"


class AccessDecision(BaseModel):
    """Outcome of a feature access check."""

    allowed: bool = Field(..., description="Whether the feature may be used")
    reason: Optional[str] = Field(None, description="Why access was denied")
    remaining_days: int = Field(default=0, description="Days left on the entitling subscription")


class AccessPolicy:
    """Entitlement checks used by subscription-gated features."""

    def __init__(
            self,
            subscription_store: Optional[SubscriptionStore] = None,
            user_repository: Optional[UserRepository] = None,
            clock: Optional[Clock] = None,
    ):
        self.store = subscription_store or get_subscription_store()
        self.users = user_repository or get_user_repository()
        self.clock = clock or get_clock()

    def has_active_subscription(self, user_id: int) -> bool:
        """True iff the user has an active subscription covering now."""
        return self.store.find_entitling(user_id, self.clock.now()) is not None

    def entitling_subscription(self, user_id: int) -> Optional[Subscription]:
        """The subscription currently granting access, if any."""
        return self.store.find_entitling(user_id, self.clock.now())

    def remaining_days(self, user_id: int) -> int:
        """Whole days left on the entitling subscription, 0 if there is none."""
        now = self.clock.now()
        subscription = self.store.find_entitling(user_id, now)
        if subscription is None:
            return 0
        return remaining_days(subscription.end_date, now)

    def check_feature_access(self, user_id: int) -> AccessDecision:
        """Decide whether a user may use a subscription-gated feature.

        Admins and clients are not subject to subscriptions. Freelancers
        must exist, be verified, and hold an entitling subscription.
        """
        user = self.users.find(user_id)
        if user is None or user.is_deleted:
            return AccessDecision(allowed=False, reason=USER_NOT_FOUND)

        if user.role in (Role.ADMIN, Role.CLIENT):
            return AccessDecision(allowed=True)

        if not user.is_verified:
            return AccessDecision(allowed=False, reason=EMAIL_NOT_VERIFIED)

        now = self.clock.now()
        subscription = self.store.find_entitling(user_id, now)
        if subscription is None:
            logger.info("feature_access_denied", user_id=user_id, reason=NO_ACTIVE_SUBSCRIPTION)
            return AccessDecision(allowed=False, reason=NO_ACTIVE_SUBSCRIPTION)

        return AccessDecision(allowed=True, remaining_days=remaining_days(subscription.end_date, now))


_access_policy_instance: Optional[AccessPolicy] = None
_policy_lock = threading.Lock()


def get_access_policy() -> AccessPolicy:
    global _access_policy_instance
    if _access_policy_instance is None:
        with _policy_lock:
            if _access_policy_instance is None:
                _access_policy_instance = AccessPolicy()
    return _access_policy_instance


def reset_access_policy() -> None:
    global _access_policy_instance
    with _policy_lock:
        _access_policy_instance = None
