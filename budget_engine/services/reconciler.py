"""Monthly reconciler - records a pending surplus decision per user per month"""

import logging
import time
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from budget_engine.config import settings
from budget_engine.domain.models import MonthlySummary, ReconciliationReport
from budget_engine.domain.reconciliation import summarize_month
from budget_engine.infrastructure.database.repositories import (
    IncomeRepository,
    ProfileRepository,
    ReconciliationRepository,
    TransactionRepository,
)
from budget_engine.infrastructure.observability.logging import log_job_summary
from budget_engine.infrastructure.observability.metrics import job_duration_histogram, record_reconciliation
from budget_engine.services.batch import run_unit
from budget_engine.utils.date_utils import MonthRange, previous_month_range, today_in

JOB = "monthly_reconcile"

OUTCOME_SURPLUS = "surplus"
OUTCOME_NO_SURPLUS = "no_surplus"
OUTCOME_ALREADY_RECONCILED = "already_reconciled"


def compute_monthly_summary(db: Session, user_id: uuid.UUID, period: MonthRange) -> MonthlySummary:
    """Income, expenses and goal contributions of one user for one month"""
    incomes = IncomeRepository(db).get_incomes_by_user(user_id)
    entries = TransactionRepository(db).get_entries_between(user_id, period.start, period.end)
    return summarize_month(period.start, incomes, entries)


def reconcile_user(db: Session, user_id: uuid.UUID, period: MonthRange) -> str:
    """
    Evaluate one user's month and record a pending decision if it closed in surplus.

    Returns: OUTCOME_SURPLUS, OUTCOME_NO_SURPLUS or OUTCOME_ALREADY_RECONCILED
    """
    decisions = ReconciliationRepository(db)
    if decisions.exists_for_month(user_id, period.start):
        return OUTCOME_ALREADY_RECONCILED

    summary = compute_monthly_summary(db, user_id, period)
    if not summary.has_surplus:
        return OUTCOME_NO_SURPLUS

    # A concurrent run may have inserted between the check and here
    if not decisions.create_if_absent(user_id, period.start, summary.surplus):
        return OUTCOME_ALREADY_RECONCILED

    logging.info(
        "Recorded pending reconciliation decision",
        extra={
            "job": JOB,
            "user_id": str(user_id),
            "month_start": period.start.isoformat(),
            "surplus_amount": str(summary.surplus),
        },
    )
    return OUTCOME_SURPLUS


def run_monthly_reconciliation(db: Session, today: Optional[date] = None) -> ReconciliationReport:
    """
    Main entry point: reconcile the calendar month before today for every user.

    Re-running for the same month creates no additional decisions. A user whose
    reconciliation fails is logged and retried on the next run.
    """
    start_time = time.time()
    today = today or today_in(settings.timezone)
    period = previous_month_range(today)
    report = ReconciliationReport(month_start=period.start)

    user_ids = ProfileRepository(db).list_user_ids()
    db.commit()

    for user_id in user_ids:
        report.users_seen += 1
        ok, outcome = run_unit(
            db,
            JOB,
            "user",
            str(user_id),
            lambda: reconcile_user(db, user_id, period),
            report.failures,
        )
        if not ok:
            continue

        record_reconciliation(outcome)
        if outcome == OUTCOME_SURPLUS:
            report.decisions_created += 1
        elif outcome == OUTCOME_ALREADY_RECONCILED:
            report.skipped += 1

    duration = time.time() - start_time
    job_duration_histogram.labels(job=JOB).observe(duration)
    log_job_summary(
        JOB,
        {
            "month_start": period.start.isoformat(),
            "users_seen": report.users_seen,
            "decisions_created": report.decisions_created,
            "skipped": report.skipped,
            "failures": len(report.failures),
        },
        duration * 1000,
    )
    return report
