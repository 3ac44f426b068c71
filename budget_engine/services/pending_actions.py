"""Resolution of pending actions that need a user-supplied amount"""

import logging
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
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
from budget_engine.domain.models import TransactionType, VariableBillPayload, parse_pending_payload
from budget_engine.infrastructure.database.models import LedgerTransaction, PendingAction
from budget_engine.infrastructure.database.repositories import PendingActionRepository, TransactionRepository
from budget_engine.infrastructure.observability.metrics import record_posting
from budget_engine.utils.date_utils import today_in

VARIABLE_PAYMENT_NOTE = "Variable subscription payment"


def list_pending_actions(db: Session, user_id: uuid.UUID) -> List[PendingAction]:
    """Unresolved actions of a user, oldest due date first"""
    return PendingActionRepository(db).get_unresolved_by_user(user_id)


def _validate_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return value


def _resolve(db: Session, user_id: uuid.UUID, action_id: uuid.UUID, amount: Decimal, today: date) -> LedgerTransaction:
    repo = PendingActionRepository(db)
    action = repo.get_action_for_user(action_id, user_id)
    if action is None:
        raise NotFoundError(f"Pending action {action_id} not found")
    if action.resolved:
        raise AlreadyProcessedError(f"Pending action {action_id} was already resolved")

    payload = parse_pending_payload(action.kind, action.payload)
    if not isinstance(payload, VariableBillPayload):
        raise ValidationError(f"Pending action kind {action.kind} cannot be resolved with an amount")

    txn = TransactionRepository(db).create_transaction(
        user_id=user_id,
        name=payload.subscription_name,
        amount=amount,
        on_date=today,
        type=TransactionType.SUBSCRIPTION.value,
        category_id=payload.category_id,
        note=VARIABLE_PAYMENT_NOTE,
    )
    if not repo.mark_resolved(action.id):
        raise AlreadyProcessedError(f"Pending action {action_id} was already resolved")
    return txn


def resolve_pending_action(
    db: Session,
    user_id: uuid.UUID,
    action_id: uuid.UUID,
    amount,
    today: Optional[date] = None,
) -> LedgerTransaction:
    """
    Post the user-supplied amount of a variable bill and resolve the action.

    The transaction insert and the resolved flip commit together; a second
    call for the same action raises AlreadyProcessedError and posts nothing.
    """
    value = _validate_amount(amount)
    today = today or today_in(settings.timezone)
    try:
        txn = _resolve(db, user_id, action_id, value, today)
        db.commit()
    except DomainException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStoreError(f"Ledger store error: {e}") from e

    db.refresh(txn)
    record_posting("variable_bill")
    logging.info(
        "Pending action resolved",
        extra={"user_id": str(user_id), "pending_action_id": str(action_id), "amount": str(value)},
    )
    return txn
