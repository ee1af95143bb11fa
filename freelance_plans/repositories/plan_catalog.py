"""Plan catalog - stores plan definitions and provides lookup.

Plans are seeded from config/settings.yaml into an empty catalog and then
managed by admins. Editing a plan never touches windows already computed
for its subscriptions.
"""

import threading
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from freelance_plans.database import Database, get_database
from freelance_plans.logging_config import get_logger
from freelance_plans.models.plan import Plan, PlanCreate, PlanSubscriptionCount, PlanWithCount
from freelance_plans.models.settings import PlanDefinition
from freelance_plans.models.tables import PlanRow, SubscriptionRow
from freelance_plans.state_logger import log_plan_change

logger = get_logger(__name__)


class PlanNotFoundError(Exception):
    """Raised when a plan is not found in the catalog."""

    def __init__(self, plan_id: int):
        super().__init__(f"Plan not found: {plan_id}")
        self.plan_id = plan_id


class PlanInUseError(Exception):
    """Raised when deleting a plan that subscriptions still reference."""

    def __init__(self, plan_id: int, subscription_count: int):
        super().__init__(
            f"Plan {plan_id} is referenced by {subscription_count} subscription(s)"
        )
        self.plan_id = plan_id
        self.subscription_count = subscription_count


def _apply(row: PlanRow, data: Union[PlanCreate, PlanDefinition]) -> None:
    row.name = data.name
    row.price = data.price
    row.duration = data.duration
    row.description = data.description or ""
    row.features = list(data.features or [])
    row.plan_type = data.plan_type or "monthly"


class PlanCatalog:
    """Repository for subscription plans.

    Lookups are read-only and uncached; every call goes to the store.
    """

    def __init__(self, database: Optional[Database] = None):
        """Initialize plan catalog.

        Args:
            database: Database instance. If not provided, uses global database.
        """
        self._database = database or get_database()

    def _get_row(self, session: Session, plan_id: int) -> PlanRow:
        row = session.get(PlanRow, plan_id)
        if row is None:
            raise PlanNotFoundError(plan_id)
        return row

    def get_plan(self, plan_id: int, session: Optional[Session] = None) -> Plan:
        """Get plan by ID.

        Args:
            plan_id: Plan ID

        Returns:
            Plan

        Raises:
            PlanNotFoundError: If plan ID not found
        """
        with self._database.session(session) as s:
            return Plan.model_validate(self._get_row(s, plan_id))

    def find_plan(self, plan_id: int, session: Optional[Session] = None) -> Optional[Plan]:
        """Find plan by ID (returns None if not found)."""
        with self._database.session(session) as s:
            row = s.get(PlanRow, plan_id)
            return Plan.model_validate(row) if row is not None else None

    def _count_query(self):
        return (
            select(PlanRow, func.count(SubscriptionRow.id))
            .outerjoin(SubscriptionRow, SubscriptionRow.plan_id == PlanRow.id)
            .group_by(PlanRow.id)
            .order_by(PlanRow.id)
        )

    def list_plans(
        self,
        include_counts: bool = False,
        session: Optional[Session] = None,
    ) -> Union[list[Plan], list[PlanWithCount]]:
        """List all plans ordered by ID.

        Args:
            include_counts: Annotate each plan with how many subscriptions
                reference it

        Returns:
            List of Plan, or PlanWithCount when include_counts is set
        """
        with self._database.session(session) as s:
            if not include_counts:
                rows = s.scalars(select(PlanRow).order_by(PlanRow.id)).all()
                return [Plan.model_validate(row) for row in rows]

            results = []
            for row, count in s.execute(self._count_query()).all():
                plan = Plan.model_validate(row)
                results.append(PlanWithCount(**plan.model_dump(), subscription_count=count))
            return results

    def subscription_counts(self, session: Optional[Session] = None) -> list[PlanSubscriptionCount]:
        """Get the number of subscriptions referencing each plan."""
        with self._database.session(session) as s:
            return [
                PlanSubscriptionCount(plan_id=row.id, subscription_count=count)
                for row, count in s.execute(self._count_query()).all()
            ]

    def create_plan(self, data: PlanCreate, session: Optional[Session] = None) -> Plan:
        """Add a plan to the catalog."""
        with self._database.session(session) as s:
            row = PlanRow()
            _apply(row, data)
            s.add(row)
            s.flush()
            plan = Plan.model_validate(row)

        log_plan_change(plan.id, "created", name=plan.name, duration=plan.duration)
        return plan

    def update_plan(self, plan_id: int, data: PlanCreate, session: Optional[Session] = None) -> Plan:
        """Replace a plan's fields.

        Raises:
            PlanNotFoundError: If plan ID not found
        """
        with self._database.session(session) as s:
            row = self._get_row(s, plan_id)
            old_duration = row.duration
            _apply(row, data)
            s.flush()
            plan = Plan.model_validate(row)

        log_plan_change(
            plan.id,
            "updated",
            name=plan.name,
            old_duration=old_duration,
            new_duration=plan.duration,
        )
        return plan

    def delete_plan(self, plan_id: int, session: Optional[Session] = None) -> None:
        """Remove a plan from the catalog.

        Raises:
            PlanNotFoundError: If plan ID not found
            PlanInUseError: If any subscription references the plan
        """
        with self._database.session(session) as s:
            row = self._get_row(s, plan_id)
            in_use = s.scalar(
                select(func.count(SubscriptionRow.id)).where(SubscriptionRow.plan_id == plan_id)
            )
            if in_use:
                raise PlanInUseError(plan_id, in_use)
            s.delete(row)

        log_plan_change(plan_id, "deleted")

    def seed_plans(self, definitions: list[PlanDefinition], session: Optional[Session] = None) -> int:
        """Insert configured plans when the catalog is empty.

        Returns:
            Number of plans inserted
        """
        if not definitions:
            return 0

        with self._database.session(session) as s:
            existing = s.scalar(select(func.count(PlanRow.id)))
            if existing:
                logger.debug("plan catalog already populated", plan_count=existing)
                return 0

            for definition in definitions:
                row = PlanRow()
                _apply(row, definition)
                s.add(row)

        logger.info("plan catalog seeded", plan_count=len(definitions))
        return len(definitions)


# Global catalog instance
_plan_catalog_instance: Optional[PlanCatalog] = None
_catalog_lock = threading.Lock()


def get_plan_catalog() -> PlanCatalog:
    """Get global plan catalog instance (singleton).

    Returns:
        PlanCatalog instance
    """
    global _plan_catalog_instance
    if _plan_catalog_instance is None:
        with _catalog_lock:
            if _plan_catalog_instance is None:
                _plan_catalog_instance = PlanCatalog()
    return _plan_catalog_instance


def reset_plan_catalog() -> None:
    """Drop the global catalog so the next call rebuilds it."""
    global _plan_catalog_instance
    with _catalog_lock:
        _plan_catalog_instance = None
