"""Monthly surplus calculation - pure core of the reconciler"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from budget_engine.domain.models import Income, LedgerEntry, MonthlySummary, TransactionType
from budget_engine.domain.normalization import income_for_month


def split_spending(entries: Iterable[LedgerEntry]) -> tuple[Decimal, Decimal]:
    """
    Partition a month's ledger entries into spending and goal contributions.

    Returns: (total_expenses, total_goal_contributions)
    Every entry that is not a goal contribution counts as an expense,
    including untyped entries and subscription payments.
    """
    expenses = Decimal("0")
    contributions = Decimal("0")
    for entry in entries:
        if entry.type == TransactionType.GOAL_CONTRIBUTION.value:
            contributions += Decimal(entry.amount)
        else:
            expenses += Decimal(entry.amount)
    return expenses, contributions


def summarize_month(
    month_start: date,
    incomes: Iterable[Income],
    entries: Iterable[LedgerEntry],
) -> MonthlySummary:
    """
    Build the income/spending summary for one month.

    surplus = income - expenses - goal contributions. Only a strictly positive
    surplus is worth a reconciliation decision; break-even and deficit months
    have nothing to dispose of.
    """
    expenses, contributions = split_spending(entries)
    return MonthlySummary(
        month_start=month_start,
        total_income=income_for_month(incomes, month_start),
        total_expenses=expenses,
        total_goal_contributions=contributions,
    )
