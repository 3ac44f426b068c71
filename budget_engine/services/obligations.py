"""Obligation poster - materializes due subscriptions and scheduled goal contributions"""

import time
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from budget_engine.config import settings
from budget_engine.domain.exceptions import ValidationError
from budget_engine.domain.models import PaymentType, PostingReport, TransactionType, VariableBillPayload
from budget_engine.domain.schedule import advance_due_date, fixed_term_payment
from budget_engine.infrastructure.database.models import GoalSchedule, Subscription
from budget_engine.infrastructure.database.repositories import (
    GoalRepository,
    GoalScheduleRepository,
    PendingActionRepository,
    SubscriptionRepository,
    TransactionRepository,
)
from budget_engine.infrastructure.observability.logging import log_job_summary
from budget_engine.infrastructure.observability.metrics import job_duration_histogram, record_posting
from budget_engine.services.batch import run_unit
from budget_engine.utils.date_utils import today_in

JOB = "process_obligations"

SUBSCRIPTION_NOTE = "Automated subscription payment"
SCHEDULED_CONTRIBUTION_NOTE = "Automated scheduled contribution"

# Effects returned by a posting unit
EFFECT_TRANSACTION = "subscription"
EFFECT_PENDING_ACTION = "pending_action"
EFFECT_CONTRIBUTION = "goal_contribution"


def subscription_charge(subscription: Subscription) -> Decimal:
    """Fixed amount charged per occurrence of a recurring or fixed-term subscription"""
    if subscription.payment_type == PaymentType.FIXED_TERM.value:
        return fixed_term_payment(subscription.total_loan_amount, subscription.payoff_period_months)
    if subscription.payment_type == PaymentType.RECURRING.value:
        if subscription.amount is None:
            raise ValidationError(f"Recurring subscription {subscription.id} has no amount")
        return Decimal(subscription.amount)
    raise ValidationError(f"Unknown payment type: {subscription.payment_type}")


def post_subscription_occurrence(db: Session, subscription: Subscription, due_date: date, today: date) -> Optional[str]:
    """
    Post one due occurrence of a subscription and advance its cursor.

    The cursor advance is a compare-and-swap on due_date and shares the
    caller's database transaction with the posting, so an occurrence is either
    fully posted and advanced or not touched at all.

    Returns: the effect posted, or None if another run already claimed the occurrence
    """
    next_due = advance_due_date(due_date, subscription.billing_cycle or "monthly")

    if subscription.payment_type == PaymentType.VARIABLE_RECURRING.value:
        if not SubscriptionRepository(db).claim_occurrence(subscription.id, due_date, next_due):
            return None
        payload = VariableBillPayload(
            subscription_id=subscription.id,
            subscription_name=subscription.name,
            category_id=subscription.category_id,
        )
        created = PendingActionRepository(db).create_variable_bill(
            user_id=subscription.user_id,
            payload=payload,
            due_date=today,
            occurrence_date=due_date,
        )
        return EFFECT_PENDING_ACTION if created else None

    # Validate before claiming so a malformed record keeps its cursor
    amount = subscription_charge(subscription)
    if not SubscriptionRepository(db).claim_occurrence(subscription.id, due_date, next_due):
        return None

    TransactionRepository(db).create_transaction(
        user_id=subscription.user_id,
        name=subscription.name,
        amount=amount,
        on_date=today,
        type=TransactionType.SUBSCRIPTION.value,
        category_id=subscription.category_id,
        note=SUBSCRIPTION_NOTE,
    )
    return EFFECT_TRANSACTION


def apply_scheduled_contribution(db: Session, schedule: GoalSchedule, today: date) -> Optional[str]:
    """
    Post a scheduled goal contribution and credit the goal.

    Returns: the effect posted, or None if the schedule already ran today or
    its goal has been completed in the meantime
    """
    if not GoalScheduleRepository(db).claim_for_day(schedule.id, today):
        return None

    if not GoalRepository(db).add_contribution(schedule.goal_id, schedule.amount, only_open=True):
        return None

    TransactionRepository(db).create_transaction(
        user_id=schedule.user_id,
        name=f"Scheduled contribution to {schedule.goal.goal_name}",
        amount=schedule.amount,
        on_date=today,
        type=TransactionType.GOAL_CONTRIBUTION.value,
        note=SCHEDULED_CONTRIBUTION_NOTE,
    )
    return EFFECT_CONTRIBUTION


def _count(report: PostingReport, effect: Optional[str]) -> None:
    if effect is None:
        report.skipped += 1
        return
    record_posting(effect)
    if effect == EFFECT_TRANSACTION:
        report.subscriptions_posted += 1
    elif effect == EFFECT_PENDING_ACTION:
        report.pending_actions_created += 1
    else:
        report.contributions_applied += 1


def _post_due_subscriptions(db: Session, today: date, report: PostingReport) -> None:
    max_cycles = settings.max_catch_up_cycles if settings.catch_up_missed_cycles else 1

    for subscription in SubscriptionRepository(db).get_due_subscriptions(today):
        subscription_id = subscription.id
        due_date = subscription.next_due_date
        cycle = subscription.billing_cycle or "monthly"

        for _ in range(max_cycles):
            ok, effect = run_unit(
                db,
                JOB,
                "subscription",
                str(subscription_id),
                lambda: post_subscription_occurrence(db, subscription, due_date, today),
                report.failures,
            )
            if not ok:
                break
            _count(report, effect)
            if effect is None:
                break

            due_date = advance_due_date(due_date, cycle)
            if due_date > today:
                break


def _apply_goal_schedules(db: Session, today: date, report: PostingReport) -> None:
    for schedule in GoalScheduleRepository(db).get_schedules_for_day(today.day):
        ok, effect = run_unit(
            db,
            JOB,
            "goal_schedule",
            str(schedule.id),
            lambda: apply_scheduled_contribution(db, schedule, today),
            report.failures,
        )
        if ok:
            _count(report, effect)


def process_due_obligations(db: Session, today: Optional[date] = None) -> PostingReport:
    """
    Main entry point: post every obligation that has come due as of today.

    Safe to run any number of times per day: each subscription occurrence and
    each schedule/day pair is claimed at most once, and a failed record stays
    eligible for the next run.
    """
    start_time = time.time()
    today = today or today_in(settings.timezone)
    report = PostingReport(run_date=today)

    _post_due_subscriptions(db, today, report)
    _apply_goal_schedules(db, today, report)

    duration = time.time() - start_time
    job_duration_histogram.labels(job=JOB).observe(duration)
    log_job_summary(
        JOB,
        {
            "run_date": today.isoformat(),
            "subscriptions_posted": report.subscriptions_posted,
            "pending_actions_created": report.pending_actions_created,
            "contributions_applied": report.contributions_applied,
            "skipped": report.skipped,
            "failures": len(report.failures),
        },
        duration * 1000,
    )
    return report
