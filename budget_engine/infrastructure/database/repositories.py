"""Data access layer for ledger entities"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, contains_eager

from budget_engine.domain.models import (
    IncomeFrequency,
    LedgerEntry,
    OneTimeIncome,
    RecurringIncome,
    VariableBillPayload,
)
from budget_engine.domain.models import Income as IncomeVariant
from budget_engine.infrastructure.database.models import (
    Goal,
    GoalSchedule,
    Income,
    LedgerTransaction,
    PendingAction,
    Profile,
    ReconciliationDecision,
    Rollover,
    Subscription,
)

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session, model):
    """INSERT construct supporting ON CONFLICT for the session's backend"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported for dialect {dialect}")


class ProfileRepository:
    """Repository for budget owners"""

    def __init__(self, db: Session):
        self.db = db

    def list_user_ids(self) -> List[uuid.UUID]:
        return list(self.db.scalars(select(Profile.id).order_by(Profile.created_at, Profile.id)))


class IncomeRepository:
    """Repository for income sources"""

    def __init__(self, db: Session):
        self.db = db

    def get_incomes_by_user(self, user_id: uuid.UUID) -> List[IncomeVariant]:
        """Fetch a user's incomes as recurring/one-time variants, skipping malformed rows"""
        rows = self.db.scalars(select(Income).where(Income.user_id == user_id)).all()
        incomes: List[IncomeVariant] = []
        for row in rows:
            one_time = row.is_recurring is False or row.frequency == IncomeFrequency.ONE_TIME.value
            if not one_time:
                incomes.append(RecurringIncome(amount=row.amount, frequency=row.frequency))
            elif row.payment_date is not None:
                incomes.append(OneTimeIncome(amount=row.amount, payment_date=row.payment_date))
            else:
                logger.warning(
                    "Skipping one-time income without payment_date",
                    extra={"income_id": str(row.id), "user_id": str(user_id)},
                )
        return incomes


class SubscriptionRepository:
    """Repository for recurring bills"""

    def __init__(self, db: Session):
        self.db = db

    def get_due_subscriptions(self, as_of: date) -> List[Subscription]:
        """Subscriptions whose next occurrence is on or before as_of"""
        return list(
            self.db.scalars(
                select(Subscription)
                .where(Subscription.next_due_date <= as_of)
                .order_by(Subscription.next_due_date, Subscription.id)
            )
        )

    def claim_occurrence(self, subscription_id: uuid.UUID, seen_due_date: date, next_due_date: date) -> bool:
        """
        Advance the cursor only if it still points at seen_due_date.

        Returns False when a concurrent run already claimed the occurrence.
        """
        result = self.db.execute(
            update(Subscription)
            .where(Subscription.id == subscription_id, Subscription.next_due_date == seen_due_date)
            .values(next_due_date=next_due_date)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class GoalRepository:
    """Repository for savings goals"""

    def __init__(self, db: Session):
        self.db = db

    def get_goal_for_user(self, goal_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Goal]:
        return self.db.scalars(select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id)).first()

    def add_contribution(self, goal_id: uuid.UUID, amount: Decimal, only_open: bool = False) -> bool:
        """
        Increase current_amount and recompute is_completed in one statement.

        With only_open=True a goal that is already completed is left untouched
        and False is returned.
        """
        new_amount = Goal.current_amount + amount
        stmt = update(Goal).where(Goal.id == goal_id)
        if only_open:
            stmt = stmt.where(Goal.is_completed.is_(False))
        result = self.db.execute(
            stmt.values(current_amount=new_amount, is_completed=new_amount >= Goal.target_amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class GoalScheduleRepository:
    """Repository for scheduled goal contributions"""

    def __init__(self, db: Session):
        self.db = db

    def get_schedules_for_day(self, day_of_month: int) -> List[GoalSchedule]:
        """Schedules firing on day_of_month whose goal still accepts contributions"""
        return list(
            self.db.scalars(
                select(GoalSchedule)
                .join(GoalSchedule.goal)
                .options(contains_eager(GoalSchedule.goal))
                .where(GoalSchedule.day_of_month == day_of_month, Goal.is_completed.is_(False))
                .order_by(GoalSchedule.id)
            )
        )

    def claim_for_day(self, schedule_id: uuid.UUID, as_of: date) -> bool:
        """Mark the schedule applied for as_of unless it already was"""
        result = self.db.execute(
            update(GoalSchedule)
            .where(
                GoalSchedule.id == schedule_id,
                or_(GoalSchedule.last_applied_on.is_(None), GoalSchedule.last_applied_on < as_of),
            )
            .values(last_applied_on=as_of)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(
        self,
        user_id: uuid.UUID,
        name: str,
        amount: Decimal,
        on_date: date,
        type: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
    ) -> LedgerTransaction:
        """Append a transaction to the ledger (flushed, not committed)"""
        db_txn = LedgerTransaction(
            user_id=user_id,
            name=name,
            amount=amount,
            date=on_date,
            type=type,
            category_id=category_id,
            note=note,
        )
        self.db.add(db_txn)
        self.db.flush()
        return db_txn

    def get_entries_between(self, user_id: uuid.UUID, start: date, end: date) -> List[LedgerEntry]:
        """Amounts and types of a user's transactions dated in [start, end]"""
        rows = self.db.execute(
            select(LedgerTransaction.amount, LedgerTransaction.type).where(
                LedgerTransaction.user_id == user_id,
                LedgerTransaction.date >= start,
                LedgerTransaction.date <= end,
            )
        ).all()
        return [LedgerEntry(amount=row.amount, type=row.type) for row in rows]


class PendingActionRepository:
    """Repository for pending user actions"""

    def __init__(self, db: Session):
        self.db = db

    def create_variable_bill(
        self,
        user_id: uuid.UUID,
        payload: VariableBillPayload,
        due_date: date,
        occurrence_date: date,
    ) -> bool:
        """
        Record a variable bill awaiting an amount.

        Returns False if an action for this (subscription, occurrence) exists.
        """
        stmt = (
            _dialect_insert(self.db, PendingAction)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                kind=payload.kind,
                payload=payload.to_dict(),
                due_date=due_date,
                resolved=False,
                subscription_id=payload.subscription_id,
                occurrence_date=occurrence_date,
            )
            .on_conflict_do_nothing(index_elements=["subscription_id", "occurrence_date"])
        )
        return self.db.execute(stmt).rowcount == 1

    def get_unresolved_by_user(self, user_id: uuid.UUID) -> List[PendingAction]:
        return list(
            self.db.scalars(
                select(PendingAction)
                .where(PendingAction.user_id == user_id, PendingAction.resolved.is_(False))
                .order_by(PendingAction.due_date, PendingAction.created_at)
            )
        )

    def get_action_for_user(self, action_id: uuid.UUID, user_id: uuid.UUID) -> Optional[PendingAction]:
        return self.db.scalars(
            select(PendingAction).where(PendingAction.id == action_id, PendingAction.user_id == user_id)
        ).first()

    def mark_resolved(self, action_id: uuid.UUID) -> bool:
        """Flip resolved false → true; False if it was already resolved"""
        result = self.db.execute(
            update(PendingAction)
            .where(PendingAction.id == action_id, PendingAction.resolved.is_(False))
            .values(resolved=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class ReconciliationRepository:
    """Repository for monthly reconciliation decisions"""

    def __init__(self, db: Session):
        self.db = db

    def exists_for_month(self, user_id: uuid.UUID, month_start: date) -> bool:
        return (
            self.db.scalars(
                select(ReconciliationDecision.id).where(
                    ReconciliationDecision.user_id == user_id,
                    ReconciliationDecision.month_start == month_start,
                )
            ).first()
            is not None
        )

    def create_if_absent(self, user_id: uuid.UUID, month_start: date, surplus_amount: Decimal) -> bool:
        """
        Insert a pending decision unless one exists for (user_id, month_start).

        The unique constraint makes this safe against concurrent runs.
        """
        stmt = (
            _dialect_insert(self.db, ReconciliationDecision)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                month_start=month_start,
                surplus_amount=surplus_amount,
                decision=None,
                processed=False,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "month_start"])
        )
        return self.db.execute(stmt).rowcount == 1

    def get_decision_for_user(
        self,
        reconciliation_id: uuid.UUID,
        user_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[ReconciliationDecision]:
        stmt = select(ReconciliationDecision).where(
            ReconciliationDecision.id == reconciliation_id,
            ReconciliationDecision.user_id == user_id,
        )
        if for_update:
            stmt = stmt.with_for_update()  # ignored by SQLite
        return self.db.scalars(stmt).first()

    def get_pending_by_user(self, user_id: uuid.UUID) -> List[ReconciliationDecision]:
        return list(
            self.db.scalars(
                select(ReconciliationDecision)
                .where(ReconciliationDecision.user_id == user_id, ReconciliationDecision.processed.is_(False))
                .order_by(ReconciliationDecision.month_start.desc())
            )
        )

    def mark_processed(
        self,
        reconciliation_id: uuid.UUID,
        decision: str,
        target_goal_id: Optional[uuid.UUID],
    ) -> bool:
        """Flip processed false → true; False if another caller got there first"""
        result = self.db.execute(
            update(ReconciliationDecision)
            .where(ReconciliationDecision.id == reconciliation_id, ReconciliationDecision.processed.is_(False))
            .values(decision=decision, target_goal_id=target_goal_id, processed=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class RolloverRepository:
    """Repository for carried-over surpluses"""

    def __init__(self, db: Session):
        self.db = db

    def upsert_rollover(self, user_id: uuid.UUID, month_start: date, amount: Decimal) -> None:
        """Set the month's rollover amount, replacing any previous value"""
        stmt = _dialect_insert(self.db, Rollover).values(
            id=uuid.uuid4(),
            user_id=user_id,
            month_start=month_start,
            amount=amount,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "month_start"],
            set_={"amount": stmt.excluded.amount},
        )
        self.db.execute(stmt)

    def get_rollover(self, user_id: uuid.UUID, month_start: date) -> Optional[Rollover]:
        return self.db.scalars(
            select(Rollover).where(Rollover.user_id == user_id, Rollover.month_start == month_start)
        ).first()
