"""Integration tests for the obligation poster"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from budget_engine.config import settings
from budget_engine.infrastructure.database.models import Goal, LedgerTransaction, PendingAction, Subscription
from budget_engine.infrastructure.database.repositories import GoalRepository
from budget_engine.services.obligations import post_subscription_occurrence, process_due_obligations


def transactions_of(db: Session, user_id) -> list[LedgerTransaction]:
    return db.query(LedgerTransaction).filter(LedgerTransaction.user_id == user_id).all()


def test_fixed_term_subscription_posts_instalment(db, user_id, make_subscription):
    """12000 over 24 months, due Jan 15, processed Jan 20 → 500 posted, next due Feb 15"""
    sub = make_subscription(
        user_id,
        name="Car Loan",
        payment_type="fixed_term",
        amount=None,
        total_loan_amount=Decimal("12000"),
        payoff_period_months=24,
        next_due_date=date(2024, 1, 15),
        billing_cycle="monthly",
    )

    report = process_due_obligations(db, today=date(2024, 1, 20))

    txns = transactions_of(db, user_id)
    assert len(txns) == 1
    assert txns[0].amount == Decimal("500")
    assert txns[0].type == "subscription"
    assert txns[0].date == date(2024, 1, 20)
    assert txns[0].note == "Automated subscription payment"
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 2, 15)
    assert report.subscriptions_posted == 1
    assert report.failures == []


def test_recurring_subscription_posts_amount_and_category(db, user_id, make_subscription):
    import uuid

    category_id = uuid.uuid4()
    make_subscription(user_id, amount=Decimal("15.99"), category_id=category_id, next_due_date=date(2024, 3, 1))

    process_due_obligations(db, today=date(2024, 3, 1))

    txns = transactions_of(db, user_id)
    assert len(txns) == 1
    assert txns[0].amount == Decimal("15.99")
    assert txns[0].name == "Streaming"
    assert txns[0].category_id == category_id


def test_variable_subscription_creates_pending_action(db, user_id, make_subscription):
    """Variable bills wait for the user's amount instead of posting a transaction"""
    sub = make_subscription(
        user_id,
        name="Electricity",
        payment_type="variable_recurring",
        amount=None,
        next_due_date=date(2024, 1, 10),
    )

    report = process_due_obligations(db, today=date(2024, 1, 10))

    assert transactions_of(db, user_id) == []
    actions = db.query(PendingAction).filter(PendingAction.user_id == user_id).all()
    assert len(actions) == 1
    assert actions[0].kind == "variable_bill"
    assert actions[0].resolved is False
    assert actions[0].due_date == date(2024, 1, 10)
    assert actions[0].payload["subscription_id"] == str(sub.id)
    assert actions[0].payload["subscription_name"] == "Electricity"
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 2, 10)
    assert report.pending_actions_created == 1


def test_rerun_same_day_does_not_double_post(db, user_id, make_subscription, make_goal, make_schedule):
    """Running twice on the same day posts each obligation once"""
    sub = make_subscription(user_id, next_due_date=date(2024, 1, 15))
    make_subscription(user_id, name="Gas", payment_type="variable_recurring", amount=None, next_due_date=date(2024, 1, 15))
    goal = make_goal(user_id)
    make_schedule(goal, amount=Decimal("100"), day_of_month=15)

    first = process_due_obligations(db, today=date(2024, 1, 15))
    second = process_due_obligations(db, today=date(2024, 1, 15))

    assert first.subscriptions_posted == 1
    assert first.pending_actions_created == 1
    assert first.contributions_applied == 1
    assert second.subscriptions_posted == 0
    assert second.pending_actions_created == 0
    assert second.contributions_applied == 0
    assert second.skipped == 1  # the schedule is still listed for the day, but already claimed
    assert len(transactions_of(db, user_id)) == 2
    assert db.query(PendingAction).count() == 1
    db.refresh(sub)
    db.refresh(goal)
    assert sub.next_due_date == date(2024, 2, 15)
    assert goal.current_amount == Decimal("100")


def test_subscription_not_yet_due_is_untouched(db, user_id, make_subscription):
    sub = make_subscription(user_id, next_due_date=date(2024, 1, 21))

    report = process_due_obligations(db, today=date(2024, 1, 20))

    assert transactions_of(db, user_id) == []
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 1, 21)
    assert report.subscriptions_posted == 0


def test_failed_subscription_keeps_cursor_and_run_continues(db, user_id, make_subscription):
    """A malformed record is reported and retried later; other records still post"""
    broken = make_subscription(user_id, name="Broken", amount=None, next_due_date=date(2024, 1, 1))
    make_subscription(user_id, name="Gym", amount=Decimal("40"), next_due_date=date(2024, 1, 2))

    report = process_due_obligations(db, today=date(2024, 1, 5))

    txns = transactions_of(db, user_id)
    assert [t.name for t in txns] == ["Gym"]
    db.refresh(broken)
    assert broken.next_due_date == date(2024, 1, 1)
    assert len(report.failures) == 1
    assert report.failures[0].kind == "subscription"
    assert report.failures[0].record_id == str(broken.id)


def test_unknown_billing_cycle_advances_monthly(db, user_id, make_subscription):
    sub = make_subscription(user_id, billing_cycle="biweekly", next_due_date=date(2024, 1, 1))

    report = process_due_obligations(db, today=date(2024, 1, 1))

    assert len(transactions_of(db, user_id)) == 1
    assert report.failures == []
    assert report.subscriptions_posted == 1
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 2, 1)


def test_one_cycle_per_run_by_default(db, user_id, make_subscription):
    """After an outage only one missed occurrence is posted per run"""
    sub = make_subscription(user_id, billing_cycle="weekly", next_due_date=date(2024, 1, 5))

    process_due_obligations(db, today=date(2024, 1, 20))

    assert len(transactions_of(db, user_id)) == 1
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 1, 12)


def test_catch_up_posts_every_missed_cycle(db, user_id, make_subscription, monkeypatch):
    monkeypatch.setattr(settings, "catch_up_missed_cycles", True)
    sub = make_subscription(user_id, billing_cycle="weekly", next_due_date=date(2024, 1, 5))

    report = process_due_obligations(db, today=date(2024, 1, 20))

    assert len(transactions_of(db, user_id)) == 3  # Jan 5, 12, 19
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 1, 26)
    assert report.subscriptions_posted == 3


def test_catch_up_is_bounded(db, user_id, make_subscription, monkeypatch):
    monkeypatch.setattr(settings, "catch_up_missed_cycles", True)
    monkeypatch.setattr(settings, "max_catch_up_cycles", 2)
    sub = make_subscription(user_id, billing_cycle="weekly", next_due_date=date(2024, 1, 5))

    process_due_obligations(db, today=date(2024, 1, 31))

    assert len(transactions_of(db, user_id)) == 2
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 1, 19)


def test_stale_occurrence_is_not_posted(db, user_id, make_subscription):
    """A run holding an outdated due date loses the claim and posts nothing"""
    sub = make_subscription(user_id, next_due_date=date(2024, 2, 15))

    effect = post_subscription_occurrence(db, sub, date(2024, 1, 15), date(2024, 2, 15))
    db.commit()

    assert effect is None
    assert transactions_of(db, user_id) == []
    db.refresh(sub)
    assert sub.next_due_date == date(2024, 2, 15)


def test_scheduled_contribution_credits_goal(db, user_id, make_goal, make_schedule):
    goal = make_goal(user_id, current_amount=Decimal("1000"))
    make_schedule(goal, amount=Decimal("250"), day_of_month=15)

    report = process_due_obligations(db, today=date(2024, 5, 15))

    txns = transactions_of(db, user_id)
    assert len(txns) == 1
    assert txns[0].type == "goal_contribution"
    assert txns[0].amount == Decimal("250")
    assert txns[0].name == "Scheduled contribution to Emergency Fund"
    assert txns[0].note == "Automated scheduled contribution"
    db.refresh(goal)
    assert goal.current_amount == Decimal("1250")
    assert goal.is_completed is False
    assert report.contributions_applied == 1


def test_scheduled_contribution_completes_goal(db, user_id, make_goal, make_schedule):
    goal = make_goal(user_id, current_amount=Decimal("4950"), target_amount=Decimal("5000"))
    make_schedule(goal, amount=Decimal("100"), day_of_month=1)

    process_due_obligations(db, today=date(2024, 6, 1))

    db.refresh(goal)
    assert goal.current_amount == Decimal("5050")
    assert goal.is_completed is True
    assert goal.is_completed == (goal.current_amount >= goal.target_amount)


def test_completed_goal_receives_no_scheduled_contribution(db, user_id, make_goal, make_schedule):
    goal = make_goal(user_id, current_amount=Decimal("5000"), target_amount=Decimal("5000"), is_completed=True)
    make_schedule(goal, day_of_month=10)

    report = process_due_obligations(db, today=date(2024, 6, 10))

    assert transactions_of(db, user_id) == []
    db.refresh(goal)
    assert goal.current_amount == Decimal("5000")
    assert report.contributions_applied == 0


def test_schedule_only_fires_on_its_day(db, user_id, make_goal, make_schedule):
    goal = make_goal(user_id)
    make_schedule(goal, day_of_month=10)

    process_due_obligations(db, today=date(2024, 6, 11))

    assert transactions_of(db, user_id) == []


def test_schedule_fires_again_next_month(db, user_id, make_goal, make_schedule):
    goal = make_goal(user_id)
    make_schedule(goal, amount=Decimal("100"), day_of_month=10)

    process_due_obligations(db, today=date(2024, 6, 10))
    process_due_obligations(db, today=date(2024, 7, 10))

    db.refresh(goal)
    assert goal.current_amount == Decimal("200")
    assert len(transactions_of(db, user_id)) == 2


def test_failed_schedule_is_retried_and_run_continues(db, user_id, make_goal, make_schedule):
    """A goal update error rolls back that schedule only; the next run picks it up"""
    bad_goal = make_goal(user_id, goal_name="Bad")
    good_goal = make_goal(user_id, goal_name="Good")
    bad_schedule = make_schedule(bad_goal, amount=Decimal("100"), day_of_month=5)
    good_schedule = make_schedule(good_goal, amount=Decimal("100"), day_of_month=5)
    bad_goal_id = bad_goal.id

    original = GoalRepository.add_contribution

    def flaky(self, goal_id, amount, only_open=False):
        if goal_id == bad_goal_id:
            raise OperationalError("UPDATE", {}, Exception("connection reset"))
        return original(self, goal_id, amount, only_open=only_open)

    with patch.object(GoalRepository, "add_contribution", flaky):
        report = process_due_obligations(db, today=date(2024, 3, 5))

    assert [t.name for t in transactions_of(db, user_id)] == ["Scheduled contribution to Good"]
    assert len(report.failures) == 1
    assert report.failures[0].kind == "goal_schedule"
    assert report.failures[0].record_id == str(bad_schedule.id)
    assert report.contributions_applied == 1
    db.refresh(bad_schedule)
    db.refresh(good_schedule)
    db.refresh(bad_goal)
    assert bad_schedule.last_applied_on is None
    assert good_schedule.last_applied_on == date(2024, 3, 5)
    assert bad_goal.current_amount == Decimal("0")

    retry = process_due_obligations(db, today=date(2024, 3, 5))

    assert retry.contributions_applied == 1
    assert retry.skipped == 1
    db.refresh(bad_goal)
    assert bad_goal.current_amount == Decimal("100")
