"""Pydantic schemas for API request/response validation"""

import uuid
from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import List, Optional


class UnitFailureSchema(BaseModel):
    """Record skipped by a batch run"""

    kind: str
    record_id: str
    error: str


class PostingReportResponse(BaseModel):
    """Response for POST /v1/jobs/process-obligations"""

    run_date: date
    subscriptions_posted: int
    pending_actions_created: int
    contributions_applied: int
    skipped: int
    failures: List[UnitFailureSchema]


class ReconciliationReportResponse(BaseModel):
    """Response for POST /v1/jobs/monthly-reconcile"""

    month_start: date
    users_seen: int
    decisions_created: int
    skipped: int
    failures: List[UnitFailureSchema]


class ApplyDecisionRequest(BaseModel):
    """Request body for POST /v1/reconciliations/{id}/apply"""

    decision: str = Field(..., min_length=1, description="rollover | goal_contribution")
    target_goal_id: Optional[uuid.UUID] = Field(None, description="Goal receiving the surplus")


class ReconciliationSchema(BaseModel):
    """Reconciliation decision state"""

    id: str
    month_start: date
    surplus_amount: Decimal
    decision: Optional[str] = None
    target_goal_id: Optional[str] = None
    processed: bool


class ReconciliationListResponse(BaseModel):
    """Response for GET /v1/reconciliations"""

    user_id: str
    reconciliations: List[ReconciliationSchema]


class PendingActionSchema(BaseModel):
    """Unresolved pending action"""

    id: str
    kind: str
    payload: dict
    due_date: date
    resolved: bool


class PendingActionListResponse(BaseModel):
    """Response for GET /v1/pending-actions"""

    user_id: str
    pending_actions: List[PendingActionSchema]


class ResolvePendingActionRequest(BaseModel):
    """Request body for POST /v1/pending-actions/{id}/resolve"""

    amount: Decimal = Field(..., gt=0, description="Actual amount of the bill")


class TransactionSchema(BaseModel):
    """Posted ledger transaction"""

    id: str
    name: str
    amount: Decimal
    date: date
    type: Optional[str] = None
    category_id: Optional[str] = None
    note: Optional[str] = None
