"""SQLAlchemy table definitions for users, plans and subscriptions."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

Base = declarative_base()

SUBSCRIPTION_STATUSES = ("pending_start", "active", "cancelled", "expired")


class UTCDateTime(TypeDecorator):
    """Timestamp column that always round-trips as an aware UTC datetime.

    Values are stored naive in UTC so SQLite and PostgreSQL compare them the
    same way.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(Integer, nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    subscriptions = relationship("SubscriptionRow", back_populates="freelancer")


class PlanRow(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(Integer, nullable=False)
    description = Column(Text, nullable=False, default="")
    features = Column(JSON, nullable=False, default=list)
    plan_type = Column(String(20), nullable=False, default="monthly")

    subscriptions = relationship("SubscriptionRow", back_populates="plan")

    __table_args__ = (CheckConstraint("duration > 0", name="ck_plans_duration_positive"),)


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    start_date = Column(UTCDateTime, nullable=True)
    end_date = Column(UTCDateTime, nullable=True)
    status = Column(String(20), nullable=False, default="pending_start")
    activated_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    freelancer = relationship("UserRow", back_populates="subscriptions")
    plan = relationship("PlanRow", back_populates="subscriptions")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_start', 'active', 'cancelled', 'expired')",
            name="ck_subscriptions_status",
        ),
        Index("ix_subscriptions_freelancer_status", "freelancer_id", "status"),
        Index("ix_subscriptions_plan_id", "plan_id"),
    )
