"""Income normalization to monthly-equivalent amounts"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from budget_engine.domain.models import Income, IncomeFrequency, OneTimeIncome, RecurringIncome
from budget_engine.utils.date_utils import is_same_month

# Calendar-approximate multipliers: a month counts as 4 weeks / 2 fortnights
MONTHLY_MULTIPLIERS = {
    IncomeFrequency.WEEKLY.value: 4,
    IncomeFrequency.BI_WEEKLY.value: 2,
    IncomeFrequency.MONTHLY.value: 1,
}


def monthly_equivalent(amount: Decimal, frequency: str) -> Decimal:
    """
    Convert a periodic income amount to its monthly equivalent.

    weekly → ×4, bi-weekly → ×2, monthly → unchanged. Any other frequency is
    treated as an amount that is already monthly.

    Example:
        monthly_equivalent(Decimal("500"), "weekly") == Decimal("2000")
    """
    multiplier = MONTHLY_MULTIPLIERS.get(str(getattr(frequency, "value", frequency)), 1)
    return Decimal(amount) * multiplier


def income_for_month(incomes: Iterable[Income], month_start: date) -> Decimal:
    """
    Total income attributable to the month containing month_start.

    Recurring incomes contribute their monthly equivalent; one-time incomes
    contribute their raw amount only when paid within that month.
    """
    total = Decimal("0")
    for income in incomes:
        if isinstance(income, RecurringIncome):
            total += monthly_equivalent(income.amount, income.frequency)
        elif isinstance(income, OneTimeIncome):
            if is_same_month(income.payment_date, month_start):
                total += Decimal(income.amount)
        else:
            raise TypeError(f"Unsupported income variant: {type(income).__name__}")
    return total
