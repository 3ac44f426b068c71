"""SQLAlchemy ORM models for the ledger store"""

import uuid
from sqlalchemy import (
    Column,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# Fixed-point money column; amounts never pass through float
Money = Numeric(12, 2, asdecimal=True)


class Profile(Base):
    """Budget owner; the reconciler iterates over every profile"""

    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Income(Base):
    """Income source; recurring or one-time"""

    __tablename__ = "incomes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    source_name = Column(Text, nullable=False)
    amount = Column(Money, nullable=False)
    frequency = Column(Text, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    payment_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Subscription(Base):
    """Recurring bill with a next-occurrence cursor"""

    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(Text, nullable=False)
    payment_type = Column(Text, nullable=False)
    amount = Column(Money, nullable=True)
    total_loan_amount = Column(Money, nullable=True)
    payoff_period_months = Column(Integer, nullable=True)
    next_due_date = Column(Date, nullable=False, index=True)
    billing_cycle = Column(Text, nullable=False, default="monthly")
    category_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())


class Goal(Base):
    """Savings goal"""

    __tablename__ = "goals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    goal_name = Column(Text, nullable=False)
    target_amount = Column(Money, nullable=False)
    current_amount = Column(Money, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)
    target_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    schedules = relationship("GoalSchedule", back_populates="goal", cascade="all, delete-orphan")


class GoalSchedule(Base):
    """Automatic monthly contribution to a goal"""

    __tablename__ = "goal_schedules"
    __table_args__ = (
        CheckConstraint("day_of_month BETWEEN 1 AND 28", name="ck_goal_schedule_day_of_month"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    goal_id = Column(UUID(as_uuid=True), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Money, nullable=False)
    day_of_month = Column(Integer, nullable=False, index=True)
    last_applied_on = Column(Date, nullable=True)  # at most one posting per calendar day
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    goal = relationship("Goal", back_populates="schedules")


class LedgerTransaction(Base):
    """Append-only ledger row; every balance change has exactly one"""

    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(Text, nullable=False)
    amount = Column(Money, nullable=False)
    date = Column(Date, nullable=False, index=True)
    category_id = Column(UUID(as_uuid=True), nullable=True)
    type = Column(Text, nullable=True)  # NULL/expense | goal_contribution | subscription
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PendingAction(Base):
    """Work that needs a user-supplied amount before it can be posted"""

    __tablename__ = "pending_actions"
    __table_args__ = (
        UniqueConstraint("subscription_id", "occurrence_date", name="uq_pending_action_occurrence"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    kind = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)
    due_date = Column(Date, nullable=False)
    resolved = Column(Boolean, nullable=False, default=False)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)
    occurrence_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ReconciliationDecision(Base):
    """Pending or applied disposition of one month's surplus"""

    __tablename__ = "reconciliation_decisions"
    __table_args__ = (
        UniqueConstraint("user_id", "month_start", name="uq_reconciliation_user_month"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    month_start = Column(Date, nullable=False)
    surplus_amount = Column(Money, nullable=False)
    decision = Column(Text, nullable=True)  # rollover | goal_contribution
    target_goal_id = Column(UUID(as_uuid=True), nullable=True)
    processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Rollover(Base):
    """Surplus carried into a month's available funds"""

    __tablename__ = "rollovers"
    __table_args__ = (
        UniqueConstraint("user_id", "month_start", name="uq_rollover_user_month"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    month_start = Column(Date, nullable=False)
    amount = Column(Money, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
