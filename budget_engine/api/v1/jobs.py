"""POST /v1/jobs/* - scheduler triggers for the batch processes"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_engine.api.dependencies import get_request_id
from budget_engine.api.v1.schemas import PostingReportResponse, ReconciliationReportResponse
from budget_engine.infrastructure.database.session import get_db
from budget_engine.services.obligations import process_due_obligations
from budget_engine.services.reconciler import run_monthly_reconciliation

router = APIRouter()


@router.post("/jobs/process-obligations", response_model=PostingReportResponse)
def trigger_process_obligations(
    request: Request,
    as_of: Optional[date] = Query(None, description="Run as if today were this date"),
    db: Session = Depends(get_db),
):
    """
    Post every subscription and goal schedule due as of today.

    Intended to run at least daily; re-running on the same day posts nothing new.
    Per-record failures are reported in the response body, not as an error status.
    """
    request_id = get_request_id(request)
    try:
        report = process_due_obligations(db, today=as_of)
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Obligation run aborted: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return PostingReportResponse(**asdict(report))


@router.post("/jobs/monthly-reconcile", response_model=ReconciliationReportResponse)
def trigger_monthly_reconcile(
    request: Request,
    as_of: Optional[date] = Query(None, description="Run as if today were this date"),
    db: Session = Depends(get_db),
):
    """
    Reconcile the previous calendar month for every user.

    Safe to re-run: at most one decision exists per user and month.
    """
    request_id = get_request_id(request)
    try:
        report = run_monthly_reconciliation(db, today=as_of)
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Monthly reconciliation aborted: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return ReconciliationReportResponse(**asdict(report))
