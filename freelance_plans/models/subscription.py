"""Subscription status and lifecycle models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status.

    pending_start -> active -> cancelled | expired. No edges leave
    cancelled or expired.
    """

    PENDING_START = "pending_start"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    def __str__(self) -> str:
        return self.value


# Statuses that block a new subscription while their window is open
OPEN_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_START)

# Allowed lifecycle edges; admin update and admin delete bypass these
ALLOWED_TRANSITIONS = {
    SubscriptionStatus.PENDING_START: frozenset({SubscriptionStatus.ACTIVE}),
    SubscriptionStatus.ACTIVE: frozenset({SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED}),
    SubscriptionStatus.CANCELLED: frozenset(),
    SubscriptionStatus.EXPIRED: frozenset(),
}


def can_transition(old: SubscriptionStatus, new: SubscriptionStatus) -> bool:
    """Return True if old -> new is a lifecycle edge."""
    return new in ALLOWED_TRANSITIONS[old]


def sources_of(new: SubscriptionStatus) -> tuple[SubscriptionStatus, ...]:
    """Statuses that may move to ``new``, in declaration order."""
    return tuple(old for old in SubscriptionStatus if can_transition(old, new))


class Subscription(BaseModel):
    """Subscription record."""

    id: int = Field(..., description="Subscription ID")
    freelancer_id: int = Field(..., description="Owning freelancer user ID")
    plan_id: int = Field(..., description="Subscribed plan ID")
    status: SubscriptionStatus = Field(..., description="Lifecycle status")
    start_date: Optional[datetime] = Field(None, description="Window start (UTC)")
    end_date: Optional[datetime] = Field(None, description="Window end (UTC), set at activation")
    activated_at: Optional[datetime] = Field(None, description="When the subscription became active")
    created_at: datetime = Field(..., description="Row creation time")
    updated_at: datetime = Field(..., description="Last modification time")

    class Config:
        from_attributes = True

    @property
    def expires_at(self) -> Optional[datetime]:
        """Date shown to the user as the end of the current commitment."""
        return self.end_date or self.start_date


class SubscriptionDetail(BaseModel):
    """Subscription joined with its freelancer and plan, for reporting."""

    id: int
    freelancer_id: int
    plan_id: int
    status: SubscriptionStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    freelancer_email: Optional[str] = None
    freelancer_name: Optional[str] = None
    plan_name: Optional[str] = None
    plan_price: Optional[Decimal] = None
    plan_duration: Optional[int] = None
    plan_type: Optional[str] = None


class SubscriptionStatusView(BaseModel):
    """What a freelancer sees about their own subscription."""

    status: str = Field(..., description="Lifecycle status, or 'none'")
    remaining_days: int = Field(default=0, description="Whole days left in the window")
    status_message: str = Field(default="", description="Human-readable summary")
    subscription: Optional[SubscriptionDetail] = None
