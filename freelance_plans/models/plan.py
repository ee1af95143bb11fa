"""Plan catalog models."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Plan(BaseModel):
    """Subscription plan as stored in the catalog."""

    id: int = Field(..., description="Plan ID")
    name: str = Field(..., description="Plan display name")
    price: Decimal = Field(..., description="Plan price")
    duration: int = Field(..., description="Plan duration in days")
    description: str = Field(default="", description="Plan description")
    features: list[str] = Field(default_factory=list, description="List of features")
    plan_type: str = Field(default="monthly", description="Plan type label")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 7,
                "name": "Pro Monthly",
                "price": "19.99",
                "duration": 30,
                "description": "Apply to unlimited projects",
                "features": ["Unlimited proposals"],
                "plan_type": "monthly",
            }
        }


class PlanWithCount(Plan):
    """Plan annotated with the number of subscriptions referencing it."""

    subscription_count: int = Field(default=0, description="Subscriptions referencing this plan")


class PlanSubscriptionCount(BaseModel):
    """Per-plan subscription count."""

    plan_id: int
    subscription_count: int


class PlanCreate(BaseModel):
    """Fields an admin supplies to create or replace a plan."""

    name: str = Field(..., min_length=1, max_length=100, description="Plan display name")
    price: Decimal = Field(..., ge=0, description="Plan price")
    duration: int = Field(..., gt=0, description="Plan duration in days")
    description: Optional[str] = Field(default="", description="Plan description")
    features: Optional[list[str]] = Field(default_factory=list, description="List of features")
    plan_type: Optional[str] = Field(default="monthly", description="Plan type label")
