"""Pending actions - variable bills waiting for the user's amount"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from budget_engine.api.dependencies import get_current_user_id, get_request_id
from budget_engine.api.v1.schemas import (
    PendingActionListResponse,
    PendingActionSchema,
    ResolvePendingActionRequest,
    TransactionSchema,
)
from budget_engine.domain.exceptions import (
    AlreadyProcessedError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from budget_engine.infrastructure.database.session import get_db
from budget_engine.services.pending_actions import list_pending_actions, resolve_pending_action

router = APIRouter()


@router.get("/pending-actions", response_model=PendingActionListResponse)
def get_pending_actions(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Unresolved actions of the caller, oldest due date first"""
    actions = list_pending_actions(db, user_id)
    items = [
        PendingActionSchema(
            id=str(a.id),
            kind=a.kind,
            payload=a.payload,
            due_date=a.due_date,
            resolved=a.resolved,
        )
        for a in actions
    ]
    return PendingActionListResponse(user_id=str(user_id), pending_actions=items)


@router.post("/pending-actions/{action_id}/resolve", response_model=TransactionSchema)
def resolve_action(
    action_id: str,
    request_body: ResolvePendingActionRequest,
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Record the actual amount of a variable bill as a subscription transaction"""
    request_id = get_request_id(request)
    try:
        action_uuid = uuid.UUID(action_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid pending action ID format")

    try:
        txn = resolve_pending_action(db, user_id=user_id, action_id=action_uuid, amount=request_body.amount)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlreadyProcessedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TransientStoreError as e:
        logging.error(f"Ledger store error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return TransactionSchema(
        id=str(txn.id),
        name=txn.name,
        amount=txn.amount,
        date=txn.date,
        type=txn.type,
        category_id=str(txn.category_id) if txn.category_id else None,
        note=txn.note,
    )
