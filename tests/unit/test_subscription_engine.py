"""Tests for SubscriptionEngine - subscription lifecycle state machine."""

import threading
from datetime import timedelta
from unittest.mock import patch

import pytest

from freelance_plans.models.subscription import SubscriptionStatus
from freelance_plans.models.user import Role
from freelance_plans.services.subscription_engine import (
    AlreadySubscribedError,
    InvalidSubscriptionStateError,
    InvalidUserRoleError,
    NoActiveSubscriptionError,
    PlanNotFoundError,
    SubscriptionEngine,
    SubscriptionNotFoundError,
    UserNotFoundError,
    get_subscription_engine,
    reset_subscription_engine,
)


class TestSubscribe:
    """Test self-service subscription."""

    def test_subscribe_creates_active_window(self, engine, freelancer, monthly_plan, t0):
        """Test that a new subscription starts now and runs for the plan duration."""
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.freelancer_id == freelancer.id
        assert subscription.plan_id == monthly_plan.id
        assert subscription.start_date == t0
        assert subscription.end_date == t0 + timedelta(days=30)
        assert subscription.activated_at == t0

    def test_subscribe_yearly_plan(self, engine, freelancer, yearly_plan, t0):
        subscription = engine.subscribe(freelancer.id, yearly_plan.id)
        assert subscription.end_date - subscription.start_date == timedelta(days=365)

    def test_subscribe_unknown_plan(self, engine, freelancer, store):
        with pytest.raises(PlanNotFoundError) as exc_info:
            engine.subscribe(freelancer.id, 999)
        assert exc_info.value.plan_id == 999
        assert store.count() == 0

    def test_subscribe_unknown_user(self, engine, monthly_plan):
        with pytest.raises(UserNotFoundError):
            engine.subscribe(999, monthly_plan.id)

    def test_subscribe_deleted_user(self, engine, freelancer, users, monthly_plan):
        users.mark_deleted(freelancer.id)
        with pytest.raises(UserNotFoundError):
            engine.subscribe(freelancer.id, monthly_plan.id)

    def test_second_subscribe_rejected_while_window_open(self, engine, freelancer, monthly_plan, yearly_plan, clock, t0):
        """Test that an open window blocks any new plan."""
        first = engine.subscribe(freelancer.id, monthly_plan.id)
        clock.advance(days=1)

        with pytest.raises(AlreadySubscribedError) as exc_info:
            engine.subscribe(freelancer.id, yearly_plan.id)

        error = exc_info.value
        assert error.subscription_id == first.id
        assert error.expires_at == t0 + timedelta(days=30)
        assert "until 2026-03-31" in str(error)

    def test_subscribe_allowed_after_window_elapses(self, engine, store, freelancer, monthly_plan, clock, t0):
        """Test that an unswept overdue row is expired at admission and no longer blocks."""
        first = engine.subscribe(freelancer.id, monthly_plan.id)
        clock.advance(days=30, seconds=1)

        second = engine.subscribe(freelancer.id, monthly_plan.id)

        assert second.id != first.id
        assert second.start_date == t0 + timedelta(days=30, seconds=1)
        assert store.get(first.id).status == SubscriptionStatus.EXPIRED

    def test_subscribe_allowed_at_exact_end(self, engine, freelancer, monthly_plan, clock):
        engine.subscribe(freelancer.id, monthly_plan.id)
        clock.advance(days=30)
        assert engine.subscribe(freelancer.id, monthly_plan.id).status == SubscriptionStatus.ACTIVE

    def test_pending_assignment_blocks_subscribe(self, engine, freelancer, monthly_plan):
        staged = engine.assign(freelancer.id, monthly_plan.id)

        with pytest.raises(AlreadySubscribedError) as exc_info:
            engine.subscribe(freelancer.id, monthly_plan.id)

        assert exc_info.value.subscription_id == staged.id
        assert exc_info.value.expires_at is None
        assert "waiting to be activated" in str(exc_info.value)

    def test_plan_edit_does_not_move_existing_window(self, engine, catalog, freelancer, monthly_plan, t0):
        """Test that windows are fixed when computed."""
        from freelance_plans.models.plan import PlanCreate

        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        catalog.update_plan(
            monthly_plan.id,
            PlanCreate(name=monthly_plan.name, price=monthly_plan.price, duration=90),
        )
        assert engine.store.get(subscription.id).end_date == t0 + timedelta(days=30)


class TestLifecycleScenario:
    """Subscribe, reject, cancel, resubscribe on a frozen clock."""

    def test_cancel_frees_the_slot(self, engine, store, freelancer, monthly_plan, yearly_plan, clock, t0):
        first = engine.subscribe(freelancer.id, monthly_plan.id)

        clock.advance(days=1)
        with pytest.raises(AlreadySubscribedError) as exc_info:
            engine.subscribe(freelancer.id, yearly_plan.id)
        assert exc_info.value.expires_at == t0 + timedelta(days=30)

        clock.advance(days=1)
        cancelled = engine.cancel(freelancer.id)
        assert cancelled.id == first.id
        assert cancelled.status == SubscriptionStatus.CANCELLED

        clock.advance(seconds=1)
        second = engine.subscribe(freelancer.id, yearly_plan.id)
        assert second.start_date == t0 + timedelta(days=2, seconds=1)
        assert second.end_date == second.start_date + timedelta(days=365)

        statuses = sorted(s.status.value for s in store.list_all())
        assert statuses == ["active", "cancelled"]


class TestConcurrentSubscribe:
    """Test admission under concurrent requests for one freelancer."""

    def test_only_one_of_two_racing_subscribes_wins(self, engine, store, freelancer, monthly_plan, yearly_plan):
        barrier = threading.Barrier(2)
        results = []
        errors = []

        def attempt(plan_id):
            barrier.wait()
            try:
                results.append(engine.subscribe(freelancer.id, plan_id))
            except AlreadySubscribedError as e:
                errors.append(e)

        threads = [
            threading.Thread(target=attempt, args=(monthly_plan.id,)),
            threading.Thread(target=attempt, args=(yearly_plan.id,)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(results) == 1
        assert len(errors) == 1
        assert errors[0].subscription_id == results[0].id
        assert store.count() == 1

    def test_different_freelancers_do_not_block_each_other(self, engine, store, make_user, monthly_plan):
        freelancers = [make_user() for _ in range(4)]
        barrier = threading.Barrier(len(freelancers))
        results = []

        def attempt(user_id):
            barrier.wait()
            results.append(engine.subscribe(user_id, monthly_plan.id))

        threads = [threading.Thread(target=attempt, args=(user.id,)) for user in freelancers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(results) == 4
        assert store.count() == 4


class TestAssignAndActivate:
    """Test admin staging and activation."""

    def test_assign_stages_pending_start(self, engine, freelancer, monthly_plan):
        staged = engine.assign(freelancer.id, monthly_plan.id)
        assert staged.status == SubscriptionStatus.PENDING_START
        assert staged.start_date is None
        assert staged.end_date is None
        assert staged.activated_at is None

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.CLIENT])
    def test_assign_requires_freelancer(self, engine, make_user, monthly_plan, role):
        user = make_user(role=role)
        with pytest.raises(InvalidUserRoleError):
            engine.assign(user.id, monthly_plan.id)

    def test_assign_unknown_user(self, engine, monthly_plan):
        with pytest.raises(UserNotFoundError):
            engine.assign(4242, monthly_plan.id)

    def test_assign_unknown_plan(self, engine, freelancer):
        with pytest.raises(PlanNotFoundError):
            engine.assign(freelancer.id, 4242)

    def test_assign_blocked_by_active_window(self, engine, freelancer, monthly_plan):
        engine.subscribe(freelancer.id, monthly_plan.id)
        with pytest.raises(AlreadySubscribedError):
            engine.assign(freelancer.id, monthly_plan.id)

    def test_activate_defaults_to_now(self, engine, freelancer, monthly_plan, clock, t0):
        staged = engine.assign(freelancer.id, monthly_plan.id)
        clock.advance(days=3)

        active = engine.activate(staged.id)

        assert active.status == SubscriptionStatus.ACTIVE
        assert active.start_date == t0 + timedelta(days=3)
        assert active.end_date == t0 + timedelta(days=33)
        assert active.activated_at == t0 + timedelta(days=3)

    def test_activate_with_explicit_start(self, engine, freelancer, yearly_plan, t0):
        staged = engine.assign(freelancer.id, yearly_plan.id)
        start = t0 + timedelta(days=10)

        active = engine.activate(staged.id, start_date=start)

        assert active.start_date == start
        assert active.end_date == start + timedelta(days=365)

    def test_activate_uses_current_plan_duration(self, engine, catalog, freelancer, monthly_plan, t0):
        from freelance_plans.models.plan import PlanCreate

        staged = engine.assign(freelancer.id, monthly_plan.id)
        catalog.update_plan(
            monthly_plan.id,
            PlanCreate(name=monthly_plan.name, price=monthly_plan.price, duration=60),
        )
        assert engine.activate(staged.id).end_date == t0 + timedelta(days=60)

    def test_activate_twice_rejected(self, engine, freelancer, monthly_plan):
        staged = engine.assign(freelancer.id, monthly_plan.id)
        engine.activate(staged.id)
        with pytest.raises(InvalidSubscriptionStateError):
            engine.activate(staged.id)

    @pytest.mark.parametrize("status", [SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED])
    def test_activate_terminal_status_rejected(self, engine, freelancer, monthly_plan, status):
        staged = engine.assign(freelancer.id, monthly_plan.id)
        engine.admin_update(staged.id, status=status)

        with pytest.raises(InvalidSubscriptionStateError, match="cannot be activated"):
            engine.activate(staged.id)

    def test_activate_missing(self, engine):
        with pytest.raises(SubscriptionNotFoundError):
            engine.activate(31337)


class TestCancel:
    """Test self-service cancellation."""

    def test_cancel_without_subscription(self, engine, freelancer):
        with pytest.raises(NoActiveSubscriptionError) as exc_info:
            engine.cancel(freelancer.id)
        assert str(exc_info.value) == "No active subscription found"

    def test_repeated_cancel_keeps_failing(self, engine, freelancer, monthly_plan):
        """Test that cancel is not idempotent-success."""
        engine.subscribe(freelancer.id, monthly_plan.id)
        engine.cancel(freelancer.id)
        with pytest.raises(NoActiveSubscriptionError):
            engine.cancel(freelancer.id)

    def test_cancel_does_not_touch_pending(self, engine, store, freelancer, monthly_plan):
        staged = engine.assign(freelancer.id, monthly_plan.id)
        with pytest.raises(NoActiveSubscriptionError):
            engine.cancel(freelancer.id)
        assert store.get(staged.id).status == SubscriptionStatus.PENDING_START


class TestAdminOverrides:
    """Test admin update and hard delete."""

    def test_admin_update_can_reopen_cancelled(self, engine, freelancer, monthly_plan, t0):
        """Test that the override skips transition rules."""
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        engine.cancel(freelancer.id)

        updated = engine.admin_update(subscription.id, status=SubscriptionStatus.ACTIVE)

        assert updated.status == SubscriptionStatus.ACTIVE
        assert updated.end_date == t0 + timedelta(days=30)

    def test_admin_update_end_date_only(self, engine, freelancer, monthly_plan, t0):
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        new_end = t0 + timedelta(days=45)

        updated = engine.admin_update(subscription.id, end_date=new_end)

        assert updated.status == SubscriptionStatus.ACTIVE
        assert updated.end_date == new_end

    def test_admin_update_missing(self, engine):
        with pytest.raises(SubscriptionNotFoundError):
            engine.admin_update(77, status=SubscriptionStatus.EXPIRED)

    def test_admin_delete_frees_the_slot(self, engine, store, freelancer, monthly_plan):
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        engine.admin_delete(subscription.id)

        assert store.find(subscription.id) is None
        assert engine.subscribe(freelancer.id, monthly_plan.id).status == SubscriptionStatus.ACTIVE

    def test_admin_delete_missing(self, engine):
        with pytest.raises(SubscriptionNotFoundError):
            engine.admin_delete(77)


class TestExpireOverdue:
    """Test the expiry sweep."""

    def test_sweep_expires_only_overdue_rows(self, engine, store, make_user, monthly_plan, yearly_plan, clock):
        short = engine.subscribe(make_user().id, monthly_plan.id)
        long = engine.subscribe(make_user().id, yearly_plan.id)
        clock.advance(days=31)

        expired = engine.expire_overdue()

        assert [s.id for s in expired] == [short.id]
        assert store.get(short.id).status == SubscriptionStatus.EXPIRED
        assert store.get(long.id).status == SubscriptionStatus.ACTIVE

    def test_sweep_is_idempotent(self, engine, freelancer, monthly_plan, clock):
        engine.subscribe(freelancer.id, monthly_plan.id)
        clock.advance(days=31)
        assert len(engine.expire_overdue()) == 1
        assert engine.expire_overdue() == []

    def test_sweep_leaves_cancelled_rows(self, engine, store, freelancer, monthly_plan, clock):
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        engine.cancel(freelancer.id)
        clock.advance(days=31)

        assert engine.expire_overdue() == []
        assert store.get(subscription.id).status == SubscriptionStatus.CANCELLED


class TestGetStatus:
    """Test the freelancer status view."""

    def test_no_subscription(self, engine, freelancer):
        view = engine.get_status(freelancer.id)
        assert view.status == "none"
        assert view.remaining_days == 0
        assert view.subscription is None

    def test_active_subscription(self, engine, freelancer, monthly_plan, clock):
        engine.subscribe(freelancer.id, monthly_plan.id)
        clock.advance(days=10, hours=1)

        view = engine.get_status(freelancer.id)

        assert view.status == "active"
        assert view.remaining_days == 20
        assert view.status_message == "20 days remaining"
        assert view.subscription.plan_name == "Pro Monthly"

    def test_pending_subscription(self, engine, freelancer, monthly_plan):
        engine.assign(freelancer.id, monthly_plan.id)

        view = engine.get_status(freelancer.id)

        assert view.status == "pending_start"
        assert view.remaining_days == 30
        assert view.status_message == "Starts when activated"

    def test_overdue_active_reported_expired_before_sweep(self, engine, store, freelancer, monthly_plan, clock):
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        clock.advance(days=31)

        view = engine.get_status(freelancer.id)

        assert view.status == "expired"
        assert view.remaining_days == 0
        assert view.status_message == "Subscription expired"
        assert store.get(subscription.id).status == SubscriptionStatus.ACTIVE

    def test_cancelled_subscription(self, engine, freelancer, monthly_plan):
        engine.subscribe(freelancer.id, monthly_plan.id)
        engine.cancel(freelancer.id)

        view = engine.get_status(freelancer.id)

        assert view.status == "cancelled"
        assert view.remaining_days == 0
        assert view.status_message == "Subscription cancelled"

    def test_staged_row_cancelled_by_admin(self, engine, freelancer, monthly_plan):
        """Test that a never-activated row overridden to cancelled reads as cancelled."""
        staged = engine.assign(freelancer.id, monthly_plan.id)
        engine.admin_update(staged.id, status=SubscriptionStatus.CANCELLED)

        view = engine.get_status(freelancer.id)

        assert view.status == "cancelled"
        assert view.remaining_days == 0
        assert view.status_message == "Subscription cancelled"

    def test_staged_row_forced_active_without_window(self, engine, freelancer, monthly_plan):
        staged = engine.assign(freelancer.id, monthly_plan.id)
        engine.admin_update(staged.id, status=SubscriptionStatus.ACTIVE)

        view = engine.get_status(freelancer.id)

        assert view.status == "expired"
        assert view.status_message == "Subscription expired"


class TestListing:
    """Test admin listings."""

    def test_list_subscriptions_with_filter(self, engine, make_user, monthly_plan):
        active = engine.subscribe(make_user().id, monthly_plan.id)
        staged = engine.assign(make_user().id, monthly_plan.id)

        assert {s.id for s in engine.list_subscriptions()} == {active.id, staged.id}
        pending = engine.list_subscriptions(status=SubscriptionStatus.PENDING_START)
        assert [s.id for s in pending] == [staged.id]

    def test_list_plan_subscribers(self, engine, freelancer, monthly_plan, yearly_plan):
        subscription = engine.subscribe(freelancer.id, monthly_plan.id)
        assert [s.id for s in engine.list_plan_subscribers(monthly_plan.id)] == [subscription.id]
        assert engine.list_plan_subscribers(yearly_plan.id) == []

    def test_list_plan_subscribers_unknown_plan(self, engine):
        with pytest.raises(PlanNotFoundError):
            engine.list_plan_subscribers(999)


class TestSubscriptionEngineSingleton:
    """Test the global engine instance."""

    def test_get_subscription_engine_returns_same_instance(self, store, catalog, users, clock):
        reset_subscription_engine()
        with patch.multiple(
            "freelance_plans.services.subscription_engine",
            get_subscription_store=lambda: store,
            get_plan_catalog=lambda: catalog,
            get_user_repository=lambda: users,
            get_clock=lambda: clock,
        ):
            first = get_subscription_engine()
            second = get_subscription_engine()

        assert first is second
        assert isinstance(first, SubscriptionEngine)
        assert first.store is store
        reset_subscription_engine()
