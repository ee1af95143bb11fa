"""User and principal models."""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class Role(IntEnum):
    """Marketplace roles."""

    ADMIN = 1
    CLIENT = 2
    FREELANCER = 3


class User(BaseModel):
    """User fields the subscription core reads."""

    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Role
    is_verified: bool = False
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Principal(BaseModel):
    """Caller identity decoded from an access token."""

    user_id: int = Field(..., description="Authenticated user ID")
    role: Role = Field(..., description="Authenticated user role")
    is_verified: bool = Field(default=False, description="Email verified flag at issuance")
