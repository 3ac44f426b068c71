"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from budget_engine.domain.exceptions import ValidationError


class IncomeFrequency(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    ONE_TIME = "one-time"


class BillingCycle(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PaymentType(str, Enum):
    RECURRING = "recurring"
    FIXED_TERM = "fixed_term"
    VARIABLE_RECURRING = "variable_recurring"


class TransactionType(str, Enum):
    EXPENSE = "expense"
    GOAL_CONTRIBUTION = "goal_contribution"
    SUBSCRIPTION = "subscription"


class Disposition(str, Enum):
    """How a user disposes of a monthly surplus"""

    ROLLOVER = "rollover"
    GOAL_CONTRIBUTION = "goal_contribution"


@dataclass(frozen=True)
class RecurringIncome:
    """Income paid on a periodic schedule, counted every month"""

    amount: Decimal
    frequency: str  # IncomeFrequency value; unknown values count as monthly


@dataclass(frozen=True)
class OneTimeIncome:
    """Income paid once, counted only in the month of payment_date"""

    amount: Decimal
    payment_date: date


Income = Union[RecurringIncome, OneTimeIncome]


@dataclass(frozen=True)
class LedgerEntry:
    """Amount and type of a posted transaction, as needed for monthly totals"""

    amount: Decimal
    type: Optional[str] = None


@dataclass
class MonthlySummary:
    """Income, spending and surplus of one calendar month"""

    month_start: date
    total_income: Decimal
    total_expenses: Decimal
    total_goal_contributions: Decimal

    @property
    def surplus(self) -> Decimal:
        return self.total_income - self.total_expenses - self.total_goal_contributions

    @property
    def has_surplus(self) -> bool:
        return self.surplus > 0


@dataclass(frozen=True)
class VariableBillPayload:
    """Payload of a pending action asking the user for a variable bill amount"""

    subscription_id: uuid.UUID
    subscription_name: str
    category_id: Optional[uuid.UUID] = None

    kind = "variable_bill"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscription_id": str(self.subscription_id),
            "subscription_name": self.subscription_name,
            "category_id": str(self.category_id) if self.category_id else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VariableBillPayload":
        try:
            category_id = data.get("category_id")
            return cls(
                subscription_id=uuid.UUID(str(data["subscription_id"])),
                subscription_name=str(data["subscription_name"]),
                category_id=uuid.UUID(str(category_id)) if category_id else None,
            )
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError(f"Invalid variable_bill payload: {e}") from e


PendingActionPayload = VariableBillPayload

PAYLOAD_TYPES = {
    VariableBillPayload.kind: VariableBillPayload,
}


def parse_pending_payload(kind: str, data: Dict[str, Any]) -> PendingActionPayload:
    """Decode a stored pending action payload by its kind tag"""
    payload_type = PAYLOAD_TYPES.get(kind)
    if payload_type is None:
        raise ValidationError(f"Unknown pending action kind: {kind}")
    return payload_type.from_dict(data or {})


@dataclass
class UnitFailure:
    """A single record that could not be processed during a batch run"""

    kind: str  # "subscription" | "goal_schedule" | "user"
    record_id: str
    error: str


@dataclass
class PostingReport:
    """Outcome of one obligation posting run"""

    run_date: date
    subscriptions_posted: int = 0
    pending_actions_created: int = 0
    contributions_applied: int = 0
    skipped: int = 0
    failures: List[UnitFailure] = field(default_factory=list)


@dataclass
class ReconciliationReport:
    """Outcome of one monthly reconciliation run"""

    month_start: date
    users_seen: int = 0
    decisions_created: int = 0
    skipped: int = 0
    failures: List[UnitFailure] = field(default_factory=list)
