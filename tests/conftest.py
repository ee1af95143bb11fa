"""Shared fixtures: a file-backed SQLite database, a frozen clock and wired components."""

import itertools
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from freelance_plans.database import Database
from freelance_plans.models.plan import PlanCreate
from freelance_plans.models.user import Role
from freelance_plans.repositories.plan_catalog import PlanCatalog
from freelance_plans.repositories.subscription_store import SubscriptionStore
from freelance_plans.repositories.user_repository import UserRepository
from freelance_plans.services.access_policy import AccessPolicy
from freelance_plans.services.clock import Clock
from freelance_plans.services.subscription_engine import SubscriptionEngine

# Fixed starting instant for time-dependent tests
T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    """Clock frozen at T0."""
    return Clock(frozen_at=T0)


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite database file with all tables created."""
    db = Database(f"sqlite:///{tmp_path / 'subscriptions.db'}", busy_timeout_seconds=10)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def store(database, clock):
    return SubscriptionStore(database=database, clock=clock)


@pytest.fixture
def catalog(database):
    return PlanCatalog(database=database)


@pytest.fixture
def users(database):
    return UserRepository(database=database)


@pytest.fixture
def engine(store, catalog, users, clock):
    return SubscriptionEngine(
        subscription_store=store,
        plan_catalog=catalog,
        user_repository=users,
        clock=clock,
    )


@pytest.fixture
def policy(store, users, clock):
    return AccessPolicy(subscription_store=store, user_repository=users, clock=clock)


@pytest.fixture
def make_user(users):
    """Factory creating users with unique emails."""
    counter = itertools.count(1)

    def _make(role=Role.FREELANCER, is_verified=True, first_name="Test"):
        n = next(counter)
        return users.create(
            email=f"user{n}@example.com",
            password_hash="not-a-real-hash",
            role=role,
            first_name=first_name,
            last_name=f"User{n}",
            is_verified=is_verified,
        )

    return _make


@pytest.fixture
def freelancer(make_user):
    return make_user(role=Role.FREELANCER)


@pytest.fixture
def monthly_plan(catalog):
    """30-day plan."""
    return catalog.create_plan(
        PlanCreate(
            name="Pro Monthly",
            price=Decimal("19.99"),
            duration=30,
            description="Unlimited proposals",
            features=["Unlimited proposals"],
            plan_type="monthly",
        )
    )


@pytest.fixture
def yearly_plan(catalog):
    """365-day plan."""
    return catalog.create_plan(
        PlanCreate(
            name="Pro Yearly",
            price=Decimal("199.00"),
            duration=365,
            features=["Unlimited proposals", "Priority listing"],
            plan_type="yearly",
        )
    )
