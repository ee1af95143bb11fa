"""Tests for lifecycle rules and request validation models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from freelance_plans.models import (
    ActivateSubscriptionRequest,
    AdminUpdateSubscriptionRequest,
    RegisterRequest,
    Role,
    SubscribeRequest,
    SubscriptionStatus,
    TokenRequest,
    can_transition,
    sources_of,
)


class TestSubscriptionStatus:
    """Test status values and lifecycle edges."""

    def test_status_values(self):
        assert [s.value for s in SubscriptionStatus] == ["pending_start", "active", "cancelled", "expired"]
        assert str(SubscriptionStatus.ACTIVE) == "active"

    @pytest.mark.parametrize(
        "old,new",
        [
            (SubscriptionStatus.PENDING_START, SubscriptionStatus.ACTIVE),
            (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED),
            (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED),
        ],
    )
    def test_allowed_edges(self, old, new):
        assert can_transition(old, new) is True

    @pytest.mark.parametrize(
        "old,new",
        [
            (SubscriptionStatus.CANCELLED, SubscriptionStatus.ACTIVE),
            (SubscriptionStatus.EXPIRED, SubscriptionStatus.ACTIVE),
            (SubscriptionStatus.PENDING_START, SubscriptionStatus.CANCELLED),
            (SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_START),
        ],
    )
    def test_forbidden_edges(self, old, new):
        """Test that terminal statuses have no outgoing edges."""
        assert can_transition(old, new) is False

    def test_full_transition_table(self):
        """Test every status pair against the lifecycle diagram."""
        allowed = {
            (SubscriptionStatus.PENDING_START, SubscriptionStatus.ACTIVE),
            (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED),
            (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED),
        }
        for old in SubscriptionStatus:
            for new in SubscriptionStatus:
                assert can_transition(old, new) is ((old, new) in allowed), (old, new)

    def test_sources_of(self):
        assert sources_of(SubscriptionStatus.ACTIVE) == (SubscriptionStatus.PENDING_START,)
        assert sources_of(SubscriptionStatus.CANCELLED) == (SubscriptionStatus.ACTIVE,)
        assert sources_of(SubscriptionStatus.EXPIRED) == (SubscriptionStatus.ACTIVE,)
        assert sources_of(SubscriptionStatus.PENDING_START) == ()


class TestRequestModels:
    """Test API request validation."""

    @pytest.mark.parametrize("plan_id", [0, -1])
    def test_subscribe_requires_positive_plan_id(self, plan_id):
        with pytest.raises(ValidationError):
            SubscribeRequest(plan_id=plan_id)

    def test_admin_update_fields_optional(self):
        request = AdminUpdateSubscriptionRequest(subscription_id=3)
        assert request.status is None
        assert request.end_date is None

    def test_admin_update_parses_status_and_date(self):
        request = AdminUpdateSubscriptionRequest(
            subscription_id=3,
            status="expired",
            end_date="2026-12-31T00:00:00Z",
        )
        assert request.status == SubscriptionStatus.EXPIRED
        assert request.end_date.tzinfo is not None

    def test_admin_update_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            AdminUpdateSubscriptionRequest(subscription_id=3, status="paused")

    def test_naive_dates_rejected(self):
        with pytest.raises(ValidationError, match="timezone"):
            AdminUpdateSubscriptionRequest(subscription_id=3, end_date=datetime(2026, 12, 31))
        with pytest.raises(ValidationError, match="timezone"):
            ActivateSubscriptionRequest(start_date=datetime(2026, 12, 31))

    def test_register_normalizes_email(self):
        request = RegisterRequest(email="  Jane@Example.COM ", password="long-enough")
        assert request.email == "jane@example.com"
        assert request.role == Role.FREELANCER

    @pytest.mark.parametrize("email", ["no-at-sign", "@example.com", "jane@"])
    def test_register_rejects_bad_email(self, email):
        with pytest.raises(ValidationError):
            RegisterRequest(email=email, password="long-enough")

    def test_register_rejects_admin_role(self):
        with pytest.raises(ValidationError, match="admin"):
            RegisterRequest(email="a@example.com", password="long-enough", role=Role.ADMIN)

    def test_register_rejects_short_password(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@example.com", password="short")

    def test_register_rejects_password_over_72_bytes(self):
        """Test that the byte length counts, not the character length."""
        with pytest.raises(ValidationError, match="72 bytes"):
            RegisterRequest(email="a@example.com", password="\u00e9" * 40)

    def test_register_accepts_72_bytes(self):
        request = RegisterRequest(email="a@example.com", password="\u00e9" * 36)
        assert len(request.password.encode("utf-8")) == 72

    def test_token_request_lowercases_email(self):
        assert TokenRequest(email="A@B.io", password="x").email == "a@b.io"
