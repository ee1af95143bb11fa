"""API response models."""

from typing import Optional

from pydantic import BaseModel, Field

from freelance_plans.models.plan import Plan, PlanSubscriptionCount, PlanWithCount
from freelance_plans.models.subscription import (
    Subscription,
    SubscriptionDetail,
    SubscriptionStatusView,
)
from freelance_plans.models.user import Role


class PlanListResponse(BaseModel):
    success: bool = True
    plans: list[Plan]


class PlanCountListResponse(BaseModel):
    success: bool = True
    plans: list[PlanWithCount]


class PlanResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    plan: Plan


class PlanCountsResponse(BaseModel):
    success: bool = True
    counts: list[PlanSubscriptionCount]


class SubscriptionResponse(BaseModel):
    success: bool = True
    message: str
    subscription: Subscription


class ActiveSubscriptionResponse(BaseModel):
    success: bool = True
    subscription: Subscription
    remaining_days: int


class SubscriptionListResponse(BaseModel):
    success: bool = True
    count: int
    subscriptions: list[SubscriptionDetail]


class SubscriptionStatusResponse(SubscriptionStatusView):
    success: bool = True


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SweepResponse(BaseModel):
    success: bool = True
    expired_count: int = Field(..., description="Number of subscriptions marked expired")
    subscription_ids: list[int] = Field(default_factory=list)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: Role
    is_verified: bool


class ErrorResponse(BaseModel):
    """Body of an error detail."""

    error: str = Field(..., description="Error kind")
    message: str = Field(..., description="Human-readable message")
