"""Decision applier - executes a user's chosen disposition of a monthly surplus"""

import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_engine.config import settings
from budget_engine.domain.exceptions import (
    AlreadyProcessedError,
    DomainException,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from budget_engine.domain.models import Disposition, TransactionType
from budget_engine.infrastructure.database.models import ReconciliationDecision
from budget_engine.infrastructure.database.repositories import (
    GoalRepository,
    ReconciliationRepository,
    RolloverRepository,
    TransactionRepository,
)
from budget_engine.infrastructure.observability.logging import log_decision_applied
from budget_engine.infrastructure.observability.metrics import record_decision_applied
from budget_engine.utils.date_utils import month_start, today_in

SURPLUS_CONTRIBUTION_NOTE = "Monthly surplus contribution"


def parse_disposition(decision: str) -> Disposition:
    try:
        return Disposition(decision)
    except ValueError:
        raise ValidationError(f"Invalid decision: {decision!r}") from None


def _roll_over(db: Session, reconciliation: ReconciliationDecision, today: date) -> None:
    RolloverRepository(db).upsert_rollover(
        user_id=reconciliation.user_id,
        month_start=month_start(today),
        amount=reconciliation.surplus_amount,
    )


def _contribute_to_goal(
    db: Session,
    reconciliation: ReconciliationDecision,
    target_goal_id: Optional[uuid.UUID],
    today: date,
) -> None:
    if target_goal_id is None:
        raise ValidationError("target_goal_id is required for a goal_contribution decision")

    goal = GoalRepository(db).get_goal_for_user(target_goal_id, reconciliation.user_id)
    if goal is None:
        raise NotFoundError(f"Goal {target_goal_id} not found")

    TransactionRepository(db).create_transaction(
        user_id=reconciliation.user_id,
        name=f"Surplus contribution to {goal.goal_name}",
        amount=reconciliation.surplus_amount,
        on_date=today,
        type=TransactionType.GOAL_CONTRIBUTION.value,
        note=SURPLUS_CONTRIBUTION_NOTE,
    )
    if not GoalRepository(db).add_contribution(goal.id, reconciliation.surplus_amount):
        raise NotFoundError(f"Goal {target_goal_id} not found")


def _apply(
    db: Session,
    user_id: uuid.UUID,
    reconciliation_id: uuid.UUID,
    decision: str,
    target_goal_id: Optional[uuid.UUID],
    today: date,
) -> ReconciliationDecision:
    repo = ReconciliationRepository(db)
    reconciliation = repo.get_decision_for_user(reconciliation_id, user_id, for_update=True)
    if reconciliation is None:
        raise NotFoundError(f"Reconciliation {reconciliation_id} not found")
    if reconciliation.processed:
        raise AlreadyProcessedError(f"Reconciliation {reconciliation_id} was already processed")

    disposition = parse_disposition(decision)
    if disposition is Disposition.ROLLOVER:
        _roll_over(db, reconciliation, today)
        target_goal_id = None
    else:
        _contribute_to_goal(db, reconciliation, target_goal_id, today)

    # Flip last: only a fully applied disposition marks the decision processed
    if not repo.mark_processed(reconciliation.id, disposition.value, target_goal_id):
        raise AlreadyProcessedError(f"Reconciliation {reconciliation_id} was already processed")
    return reconciliation


def apply_decision(
    db: Session,
    user_id: uuid.UUID,
    reconciliation_id: uuid.UUID,
    decision: str,
    target_goal_id: Optional[uuid.UUID] = None,
    today: Optional[date] = None,
) -> ReconciliationDecision:
    """
    Apply a surplus disposition on behalf of user_id.

    rollover: upsert this month's rollover with the surplus amount.
    goal_contribution: post a goal_contribution transaction and credit the goal.

    All writes share one database transaction. On any failure nothing is
    written and the decision remains pending, so the caller can retry.

    Raises:
        NotFoundError: decision or goal missing, or owned by another user
        AlreadyProcessedError: decision already applied (also for the loser of a race)
        ValidationError: unknown decision, or goal_contribution without target_goal_id
        TransientStoreError: the ledger store failed
    """
    today = today or today_in(settings.timezone)
    try:
        reconciliation = _apply(db, user_id, reconciliation_id, decision, target_goal_id, today)
        db.commit()
    except DomainException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStoreError(f"Ledger store error: {e}") from e

    db.refresh(reconciliation)
    record_decision_applied(reconciliation.decision)
    log_decision_applied(str(user_id), str(reconciliation.id), reconciliation.decision, str(reconciliation.surplus_amount))
    return reconciliation


def list_pending_reconciliations(db: Session, user_id: uuid.UUID) -> List[ReconciliationDecision]:
    """Unprocessed decisions awaiting the user's choice, newest month first"""
    return ReconciliationRepository(db).get_pending_by_user(user_id)
