"""Configuration models.

Models for config/settings.yaml.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class PlanDefinition(BaseModel):
    """Plan seeded into an empty catalog on startup."""

    name: str = Field(..., description="Plan display name")
    price: Decimal = Field(..., ge=0, description="Plan price")
    duration: int = Field(..., gt=0, description="Plan duration in days")
    description: str = Field(default="", description="Plan description")
    features: list[str] = Field(default_factory=list, description="List of features")
    plan_type: str = Field(default="monthly", description="Plan type label (e.g. monthly, yearly)")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Pro Monthly",
                "price": "19.99",
                "duration": 30,
                "description": "Apply to unlimited projects",
                "features": ["Unlimited proposals", "Priority listing"],
                "plan_type": "monthly",
            }
        }


class DatabaseSettings(BaseModel):
    """Relational store connection settings."""

    url: str = Field(default="sqlite:///./freelance_plans.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Echo SQL statements")
    busy_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="SQLite lock wait before a writer gives up",
    )
    create_tables: bool = Field(default=True, description="Create missing tables on startup")


class AuthSettings(BaseModel):
    """JWT issuance settings."""

    jwt_secret: str = Field(..., min_length=16, description="HMAC secret for access tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expires_minutes: int = Field(default=60, gt=0, description="Access token lifetime")


class ServiceSettings(BaseModel):
    """Service behavior settings."""

    expiry_sweep_interval_seconds: int = Field(
        default=3600,
        ge=0,
        description="Seconds between expiry sweeps, 0 disables the in-process sweeper",
    )
    seed_plans: bool = Field(default=True, description="Seed the plan catalog when it is empty")


class AppSettings(BaseModel):
    """Complete settings.yaml configuration."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    plans: list[PlanDefinition] = Field(default_factory=list, description="Seed plan catalog")
    environment: Optional[str] = Field(default="development", description="Deployment environment name")
