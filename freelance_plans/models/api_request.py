"""API request models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from freelance_plans.models.subscription import SubscriptionStatus
from freelance_plans.models.user import Role

# bcrypt ignores everything past 72 bytes
PASSWORD_MAX_BYTES = 72


class SubscribeRequest(BaseModel):
    """Freelancer request to subscribe to a plan."""

    plan_id: int = Field(..., gt=0, description="Plan to subscribe to")

    class Config:
        json_schema_extra = {"example": {"plan_id": 7}}


class AdminUpdateSubscriptionRequest(BaseModel):
    """Admin override of a subscription's status and/or end date.

    Omitted fields keep their stored value.
    """

    subscription_id: int = Field(..., gt=0, description="Subscription to update")
    status: Optional[SubscriptionStatus] = Field(None, description="New status")
    end_date: Optional[datetime] = Field(None, description="New end date (ISO 8601)")

    @field_validator("end_date")
    @classmethod
    def end_date_must_be_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            raise ValueError("end_date must include a timezone offset")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "subscription_id": 12,
                "status": "active",
                "end_date": "2026-12-31T00:00:00Z",
            }
        }


class AssignSubscriptionRequest(BaseModel):
    """Admin request to stage a plan for a freelancer."""

    freelancer_id: int = Field(..., gt=0, description="Freelancer user ID")
    plan_id: int = Field(..., gt=0, description="Plan to assign")


class ActivateSubscriptionRequest(BaseModel):
    """Admin request to activate a staged subscription."""

    start_date: Optional[datetime] = Field(None, description="Window start, defaults to now")

    @field_validator("start_date")
    @classmethod
    def start_date_must_be_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            raise ValueError("start_date must include a timezone offset")
        return value


class RegisterRequest(BaseModel):
    """Self-service account creation."""

    email: str = Field(..., min_length=3, max_length=255, description="Login email")
    password: str = Field(..., min_length=8, max_length=72, description="Password")
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    role: Role = Field(default=Role.FREELANCER, description="Client or Freelancer")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"password must be at most {PASSWORD_MAX_BYTES} bytes in UTF-8")
        return value

    @field_validator("role")
    @classmethod
    def role_must_not_be_admin(cls, value: Role) -> Role:
        if value == Role.ADMIN:
            raise ValueError("admin accounts cannot be self-registered")
        return value


class TokenRequest(BaseModel):
    """Credentials exchanged for an access token."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=72)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()
