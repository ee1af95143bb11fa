"""Subscription store - relational storage for subscription state.

Manages subscription records, their windows, and status transitions.
Every method accepts an optional ``session`` so the lifecycle engine can run
several calls inside one admission unit; without it each call commits on
its own.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session

from freelance_plans.database import Database, get_database
from freelance_plans.logging_config import get_logger
from freelance_plans.models.subscription import (
    OPEN_STATUSES,
    Subscription,
    SubscriptionDetail,
    SubscriptionStatus,
    sources_of,
)
from freelance_plans.models.tables import PlanRow, SubscriptionRow, UserRow
from freelance_plans.services.clock import Clock, get_clock
from freelance_plans.state_logger import (
    log_subscription_removed,
    log_subscription_status_change,
    log_subscription_window_change,
)

logger = get_logger(__name__)

# Columns set_status() may stamp alongside the new status
_TRANSITION_FIELDS = frozenset({"start_date", "end_date", "activated_at"})

# Statuses shown in a freelancer's own status view
_VISIBLE_STATUSES = (
    SubscriptionStatus.PENDING_START,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.CANCELLED,
)


class SubscriptionNotFoundError(Exception):
    """Raised when a subscription is not found in the store."""

    def __init__(self, subscription_id: int):
        super().__init__(f"Subscription not found: {subscription_id}")
        self.subscription_id = subscription_id


def _open_window(now: datetime):
    """SQL predicate for a row that blocks a new subscription at ``now``."""
    return and_(
        SubscriptionRow.status.in_([s.value for s in OPEN_STATUSES]),
        or_(
            SubscriptionRow.end_date > now,
            SubscriptionRow.start_date > now,
            SubscriptionRow.start_date.is_(None),
        ),
    )


def _to_detail(row: SubscriptionRow, user: UserRow, plan: PlanRow) -> SubscriptionDetail:
    return SubscriptionDetail(
        id=row.id,
        freelancer_id=row.freelancer_id,
        plan_id=row.plan_id,
        status=row.status,
        start_date=row.start_date,
        end_date=row.end_date,
        activated_at=row.activated_at,
        freelancer_email=user.email,
        freelancer_name=f"{user.first_name} {user.last_name}".strip(),
        plan_name=plan.name,
        plan_price=plan.price,
        plan_duration=plan.duration,
        plan_type=plan.plan_type,
    )


class SubscriptionStore:
    """Relational storage for subscription records.

    Lookup by id, by freelancer and by plan, plus the time-dependent
    queries used for admission control, entitlement and expiry.

    Args:
        database: optional Database, global instance is used if missing
        clock: optional Clock used to stamp created_at/updated_at
    """

    def __init__(self, database: Optional[Database] = None, clock: Optional[Clock] = None):
        self._database = database or get_database()
        self._clock = clock or get_clock()

    @contextmanager
    def admission(self, user_id: int) -> Iterator[Session]:
        """Hold the per-user admission lock for the duration of the block.

        Yields a session; pass it to the other store methods so the
        overlap check and the insert share one transaction.
        """
        with self._database.admission(user_id) as session:
            yield session

    def _get_row(self, session: Session, subscription_id: int) -> SubscriptionRow:
        row = session.get(SubscriptionRow, subscription_id)
        if row is None:
            raise SubscriptionNotFoundError(subscription_id)
        return row

    def _transition_rows(
        self,
        session: Session,
        query,
        new_status: SubscriptionStatus,
    ) -> list[tuple[SubscriptionStatus, Subscription]]:
        """Move rows matched by ``query`` to ``new_status``.

        Only rows whose status has a lifecycle edge to ``new_status`` are
        locked and updated.

        Returns:
            (old_status, updated Subscription) pairs in query order
        """
        sources = [status.value for status in sources_of(new_status)]
        rows = session.scalars(query.where(SubscriptionRow.status.in_(sources)).with_for_update()).all()

        now = self._clock.now()
        old_statuses = [SubscriptionStatus(row.status) for row in rows]
        for row in rows:
            row.status = new_status.value
            row.updated_at = now
        session.flush()
        return [(old, Subscription.model_validate(row)) for old, row in zip(old_statuses, rows)]

    def find_overlapping(
        self,
        user_id: int,
        now: datetime,
        session: Optional[Session] = None,
    ) -> Optional[Subscription]:
        """Find a subscription whose window still blocks a new one.

        Args:
            user_id: Freelancer user ID
            now: Instant the window is evaluated at

        Returns:
            Most recent blocking Subscription, or None
        """
        with self._database.session(session) as s:
            row = s.scalars(
                select(SubscriptionRow)
                .where(SubscriptionRow.freelancer_id == user_id, _open_window(now))
                .order_by(SubscriptionRow.created_at.desc(), SubscriptionRow.id.desc())
                .limit(1)
            ).first()
            return Subscription.model_validate(row) if row is not None else None

    def insert(
        self,
        user_id: int,
        plan_id: int,
        start_date: Optional[datetime],
        end_date: Optional[datetime],
        status: SubscriptionStatus,
        activated_at: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> Subscription:
        """Insert a subscription row.

        Returns:
            The stored Subscription, including its generated id
        """
        now = self._clock.now()
        with self._database.session(session) as s:
            row = SubscriptionRow(
                freelancer_id=user_id,
                plan_id=plan_id,
                start_date=start_date,
                end_date=end_date,
                status=SubscriptionStatus(status).value,
                activated_at=activated_at,
                created_at=now,
                updated_at=now,
            )
            s.add(row)
            s.flush()
            subscription = Subscription.model_validate(row)

        logger.info(
            "subscription_inserted",
            subscription_id=subscription.id,
            user_id=user_id,
            plan_id=plan_id,
            status=str(subscription.status),
            end_date=end_date.isoformat() if end_date else None,
        )
        return subscription

    def get(self, subscription_id: int, session: Optional[Session] = None) -> Subscription:
        """Get subscription by id.

        Raises:
            SubscriptionNotFoundError: If the id does not exist
        """
        with self._database.session(session) as s:
            return Subscription.model_validate(self._get_row(s, subscription_id))

    def find(self, subscription_id: int, session: Optional[Session] = None) -> Optional[Subscription]:
        """Find subscription by id (returns None if not found)."""
        with self._database.session(session) as s:
            row = s.get(SubscriptionRow, subscription_id)
            return Subscription.model_validate(row) if row is not None else None

    def set_status(
        self,
        subscription_id: int,
        new_status: SubscriptionStatus,
        session: Optional[Session] = None,
        reason: Optional[str] = None,
        **extra,
    ) -> Subscription:
        """Set a subscription's status, optionally stamping window fields.

        Args:
            subscription_id: Subscription to update
            new_status: Status to store
            reason: Reason recorded in the status change log
            **extra: start_date, end_date and/or activated_at

        Raises:
            SubscriptionNotFoundError: If the id does not exist
            ValueError: If extra names an unknown field
        """
        unknown = set(extra) - _TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Unsupported subscription fields: {sorted(unknown)}")

        new_status = SubscriptionStatus(new_status)
        with self._database.session(session) as s:
            row = self._get_row(s, subscription_id)
            old_status = row.status
            row.status = new_status.value
            for field, value in extra.items():
                setattr(row, field, value)
            row.updated_at = self._clock.now()
            s.flush()
            subscription = Subscription.model_validate(row)

        log_subscription_status_change(
            subscription_id=subscription.id,
            user_id=subscription.freelancer_id,
            old_status=old_status,
            new_status=new_status,
            reason=reason,
            **{k: v.isoformat() if v else None for k, v in extra.items()},
        )
        return subscription

    def update_fields(
        self,
        subscription_id: int,
        status: Optional[SubscriptionStatus] = None,
        end_date: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> Subscription:
        """Null-coalescing update of status and end_date.

        Omitted (None) fields keep their stored value. No transition rules
        are applied.

        Raises:
            SubscriptionNotFoundError: If the id does not exist
        """
        with self._database.session(session) as s:
            row = self._get_row(s, subscription_id)
            old_status = row.status
            old_end_date = row.end_date

            if status is not None:
                row.status = SubscriptionStatus(status).value
            if end_date is not None:
                row.end_date = end_date
            row.updated_at = self._clock.now()
            s.flush()
            subscription = Subscription.model_validate(row)

        if subscription.status.value != old_status:
            log_subscription_status_change(
                subscription_id=subscription.id,
                user_id=subscription.freelancer_id,
                old_status=old_status,
                new_status=subscription.status,
                reason="admin_update",
            )
        if end_date is not None and old_end_date != subscription.end_date:
            log_subscription_window_change(
                subscription_id=subscription.id,
                user_id=subscription.freelancer_id,
                old_end_date=old_end_date.isoformat() if old_end_date else None,
                new_end_date=subscription.end_date.isoformat(),
                reason="admin_update",
            )
        return subscription

    def cancel_active(self, user_id: int, session: Optional[Session] = None) -> Optional[Subscription]:
        """Move the user's ``active`` subscription(s) to ``cancelled``.

        Returns:
            The most recent cancelled Subscription, or None if the user had
            no active row
        """
        query = (
            select(SubscriptionRow)
            .where(SubscriptionRow.freelancer_id == user_id)
            .order_by(SubscriptionRow.id.desc())
        )
        with self._database.session(session) as s:
            cancelled = self._transition_rows(s, query, SubscriptionStatus.CANCELLED)

        for old_status, subscription in cancelled:
            log_subscription_status_change(
                subscription_id=subscription.id,
                user_id=user_id,
                old_status=old_status,
                new_status=SubscriptionStatus.CANCELLED,
                reason="user_cancel",
            )
        return cancelled[0][1] if cancelled else None

    def delete_by_id(
        self,
        subscription_id: int,
        session: Optional[Session] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Hard-delete a subscription row.

        Returns:
            True iff a row existed
        """
        with self._database.session(session) as s:
            row = s.get(SubscriptionRow, subscription_id)
            if row is None:
                return False
            snapshot = Subscription.model_validate(row)
            s.delete(row)
            s.flush()

        log_subscription_removed(
            subscription_id=snapshot.id,
            user_id=snapshot.freelancer_id,
            last_status=snapshot.status,
            reason=reason,
            plan_id=snapshot.plan_id,
            start_date=snapshot.start_date.isoformat() if snapshot.start_date else None,
            end_date=snapshot.end_date.isoformat() if snapshot.end_date else None,
        )
        return True

    def _detail_query(self):
        return (
            select(SubscriptionRow, UserRow, PlanRow)
            .join(UserRow, SubscriptionRow.freelancer_id == UserRow.id)
            .join(PlanRow, SubscriptionRow.plan_id == PlanRow.id)
            .order_by(
                case((SubscriptionRow.start_date.is_(None), 1), else_=0),
                SubscriptionRow.start_date.desc(),
                SubscriptionRow.id.desc(),
            )
        )

    def list_all(
        self,
        status: Optional[SubscriptionStatus] = None,
        session: Optional[Session] = None,
    ) -> list[SubscriptionDetail]:
        """List subscriptions joined with freelancer and plan.

        Ordered by start_date descending, undated rows last.

        Args:
            status: Optional status filter
        """
        query = self._detail_query()
        if status is not None:
            query = query.where(SubscriptionRow.status == SubscriptionStatus(status).value)
        with self._database.session(session) as s:
            return [_to_detail(*row) for row in s.execute(query).all()]

    def list_by_plan(self, plan_id: int, session: Optional[Session] = None) -> list[SubscriptionDetail]:
        """List subscriptions of one plan, ordered like list_all()."""
        query = self._detail_query().where(SubscriptionRow.plan_id == plan_id)
        with self._database.session(session) as s:
            return [_to_detail(*row) for row in s.execute(query).all()]

    def find_entitling(
        self,
        user_id: int,
        now: datetime,
        session: Optional[Session] = None,
    ) -> Optional[Subscription]:
        """Find an ``active`` subscription whose window covers ``now``.

        Stored status alone is not trusted: the end date is re-checked so
        an unswept, overdue row never entitles.
        """
        with self._database.session(session) as s:
            row = s.scalars(
                select(SubscriptionRow)
                .where(
                    SubscriptionRow.freelancer_id == user_id,
                    SubscriptionRow.status == SubscriptionStatus.ACTIVE.value,
                    SubscriptionRow.start_date.is_not(None),
                    SubscriptionRow.end_date.is_not(None),
                    SubscriptionRow.end_date >= now,
                )
                .order_by(SubscriptionRow.end_date.desc())
                .limit(1)
            ).first()
            return Subscription.model_validate(row) if row is not None else None

    def find_latest(self, user_id: int, session: Optional[Session] = None) -> Optional[SubscriptionDetail]:
        """Most recent pending_start, active or cancelled subscription of a user."""
        query = (
            select(SubscriptionRow, UserRow, PlanRow)
            .join(UserRow, SubscriptionRow.freelancer_id == UserRow.id)
            .join(PlanRow, SubscriptionRow.plan_id == PlanRow.id)
            .where(
                SubscriptionRow.freelancer_id == user_id,
                SubscriptionRow.status.in_([s.value for s in _VISIBLE_STATUSES]),
            )
            .order_by(SubscriptionRow.id.desc())
            .limit(1)
        )
        with self._database.session(session) as s:
            row = s.execute(query).first()
            return _to_detail(*row) if row is not None else None

    def expire_overdue(
        self,
        now: datetime,
        user_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> list[Subscription]:
        """Mark ``active`` subscriptions whose end_date has passed as ``expired``.

        Args:
            now: Instant overdue rows are evaluated at
            user_id: Restrict the sweep to one freelancer

        Returns:
            Subscriptions that were expired
        """
        query = select(SubscriptionRow).where(
            SubscriptionRow.end_date.is_not(None),
            SubscriptionRow.end_date < now,
        )
        if user_id is not None:
            query = query.where(SubscriptionRow.freelancer_id == user_id)

        with self._database.session(session) as s:
            expired = self._transition_rows(s, query.order_by(SubscriptionRow.id), SubscriptionStatus.EXPIRED)

        for old_status, subscription in expired:
            log_subscription_status_change(
                subscription_id=subscription.id,
                user_id=subscription.freelancer_id,
                old_status=old_status,
                new_status=SubscriptionStatus.EXPIRED,
                reason="window_elapsed",
                end_date=subscription.end_date.isoformat(),
            )
        return [subscription for _, subscription in expired]

    def count(self, session: Optional[Session] = None) -> int:
        """Total number of subscription rows."""
        with self._database.session(session) as s:
            return s.scalar(select(func.count(SubscriptionRow.id))) or 0


# Global store instance
_subscription_store_instance: Optional[SubscriptionStore] = None
_store_lock = threading.Lock()


def get_subscription_store() -> SubscriptionStore:
    """Get global subscription store instance (singleton).

    Returns:
        SubscriptionStore instance
    """
    global _subscription_store_instance
    if _subscription_store_instance is None:
        with _store_lock:
            if _subscription_store_instance is None:
                _subscription_store_instance = SubscriptionStore()
    return _subscription_store_instance


def reset_subscription_store() -> None:
    """Drop the global store so the next call rebuilds it."""
    global _subscription_store_instance
    with _store_lock:
        _subscription_store_instance = None
