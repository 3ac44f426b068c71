"""Billing cycle arithmetic for recurring obligations"""

import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from dateutil.relativedelta import relativedelta

from budget_engine.domain.exceptions import ValidationError
from budget_engine.domain.models import BillingCycle

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# relativedelta clamps month/year steps to the last valid day of the target month
CYCLE_STEPS = {
    BillingCycle.WEEKLY.value: timedelta(days=7),
    BillingCycle.BI_WEEKLY.value: timedelta(days=14),
    BillingCycle.MONTHLY.value: relativedelta(months=1),
    BillingCycle.QUARTERLY.value: relativedelta(months=3),
    BillingCycle.YEARLY.value: relativedelta(years=1),
}


def advance_due_date(due_date: date, cycle: str) -> date:
    """
    Move a due date forward by exactly one billing cycle.

    Month-based cycles keep the day of month where it exists and otherwise
    clamp to the month's last day:
        2024-01-31 + monthly   → 2024-02-29
        2023-01-31 + monthly   → 2023-02-28
        2024-02-29 + yearly    → 2025-02-28
        2024-11-30 + quarterly → 2025-02-28

    An unrecognised cycle is stepped as monthly and logged.
    """
    step = CYCLE_STEPS.get(str(getattr(cycle, "value", cycle)))
    if step is None:
        logger.warning("Unknown billing cycle, advancing monthly", extra={"billing_cycle": str(cycle)})
        step = CYCLE_STEPS[BillingCycle.MONTHLY.value]
    return due_date + step


def fixed_term_payment(total_loan_amount: Optional[Decimal], payoff_period_months: Optional[int]) -> Decimal:
    """
    Monthly instalment of a fixed-term obligation, rounded to cents.

    Example:
        12000 over 24 months → 500.00
        1000 over 3 months   → 333.33
    """
    if total_loan_amount is None or not payoff_period_months or payoff_period_months <= 0:
        raise ValidationError("Fixed-term subscription requires total_loan_amount and a positive payoff_period_months")

    return (Decimal(total_loan_amount) / Decimal(payoff_period_months)).quantize(CENT, rounding=ROUND_HALF_UP)
