"""Reconciliation decisions - list pending surpluses and apply a disposition"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from budget_engine.api.dependencies import get_current_user_id, get_request_id
from budget_engine.api.v1.schemas import ApplyDecisionRequest, ReconciliationListResponse, ReconciliationSchema
from budget_engine.domain.exceptions import (
    AlreadyProcessedError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from budget_engine.infrastructure.database.models import ReconciliationDecision
from budget_engine.infrastructure.database.session import get_db
from budget_engine.services.decisions import apply_decision, list_pending_reconciliations

router = APIRouter()


def to_schema(reconciliation: ReconciliationDecision) -> ReconciliationSchema:
    return ReconciliationSchema(
        id=str(reconciliation.id),
        month_start=reconciliation.month_start,
        surplus_amount=reconciliation.surplus_amount,
        decision=reconciliation.decision,
        target_goal_id=str(reconciliation.target_goal_id) if reconciliation.target_goal_id else None,
        processed=reconciliation.processed,
    )


@router.get("/reconciliations", response_model=ReconciliationListResponse)
def get_pending_reconciliations(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Surplus decisions awaiting the caller's choice"""
    pending = list_pending_reconciliations(db, user_id)
    return ReconciliationListResponse(user_id=str(user_id), reconciliations=[to_schema(r) for r in pending])


@router.post("/reconciliations/{reconciliation_id}/apply", response_model=ReconciliationSchema)
def apply_reconciliation_decision(
    reconciliation_id: str,
    request_body: ApplyDecisionRequest,
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Apply the caller's disposition of a monthly surplus.

    Flow:
    1. Load the pending decision (must belong to the caller, not yet processed)
    2. Roll the surplus over into this month, or contribute it to a goal
    3. Mark the decision processed in the same database transaction
    """
    request_id = get_request_id(request)
    try:
        reconciliation_uuid = uuid.UUID(reconciliation_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid reconciliation ID format")

    try:
        reconciliation = apply_decision(
            db,
            user_id=user_id,
            reconciliation_id=reconciliation_uuid,
            decision=request_body.decision,
            target_goal_id=request_body.target_goal_id,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlreadyProcessedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TransientStoreError as e:
        logging.error(f"Ledger store error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return to_schema(reconciliation)
