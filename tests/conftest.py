"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from budget_engine.api.main import create_app
from budget_engine.infrastructure.database.models import (
    Base,
    Goal,
    GoalSchedule,
    Income,
    LedgerTransaction,
    Profile,
    ReconciliationDecision,
    Subscription,
)
from budget_engine.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_user(db: Session):
    """Create a profile and return its id"""

    def _make_user(email: str = "user@example.com") -> uuid.UUID:
        profile = Profile(email=email)
        db.add(profile)
        db.commit()
        return profile.id

    return _make_user


@pytest.fixture
def user_id(make_user) -> uuid.UUID:
    return make_user()


@pytest.fixture
def make_subscription(db: Session):
    """Create a subscription row"""

    def _make_subscription(user_id: uuid.UUID, **fields) -> Subscription:
        values = {
            "name": "Streaming",
            "payment_type": "recurring",
            "amount": Decimal("15.99"),
            "next_due_date": date(2024, 1, 15),
            "billing_cycle": "monthly",
        }
        values.update(fields)
        subscription = Subscription(user_id=user_id, **values)
        db.add(subscription)
        db.commit()
        return subscription

    return _make_subscription


@pytest.fixture
def make_goal(db: Session):
    """Create a savings goal"""

    def _make_goal(user_id: uuid.UUID, **fields) -> Goal:
        values = {
            "goal_name": "Emergency Fund",
            "target_amount": Decimal("5000"),
            "current_amount": Decimal("0"),
            "is_completed": False,
        }
        values.update(fields)
        goal = Goal(user_id=user_id, **values)
        db.add(goal)
        db.commit()
        return goal

    return _make_goal


@pytest.fixture
def make_schedule(db: Session):
    """Create a goal schedule"""

    def _make_schedule(goal: Goal, amount: Decimal = Decimal("100"), day_of_month: int = 15) -> GoalSchedule:
        schedule = GoalSchedule(user_id=goal.user_id, goal_id=goal.id, amount=amount, day_of_month=day_of_month)
        db.add(schedule)
        db.commit()
        return schedule

    return _make_schedule


@pytest.fixture
def make_income(db: Session):
    """Create an income source"""

    def _make_income(user_id: uuid.UUID, amount: Decimal, frequency: str = "monthly", **fields) -> Income:
        values = {"source_name": "Salary", "is_recurring": frequency != "one-time"}
        values.update(fields)
        income = Income(user_id=user_id, amount=amount, frequency=frequency, **values)
        db.add(income)
        db.commit()
        return income

    return _make_income


@pytest.fixture
def make_transaction(db: Session):
    """Append a ledger transaction"""

    def _make_transaction(user_id: uuid.UUID, amount: Decimal, on_date: date, type: str | None = None) -> LedgerTransaction:
        txn = LedgerTransaction(user_id=user_id, name="Spending", amount=amount, date=on_date, type=type)
        db.add(txn)
        db.commit()
        return txn

    return _make_transaction


@pytest.fixture
def make_reconciliation(db: Session):
    """Create a pending reconciliation decision"""

    def _make_reconciliation(
        user_id: uuid.UUID,
        surplus_amount: Decimal = Decimal("500"),
        month_start: date = date(2024, 1, 1),
    ) -> ReconciliationDecision:
        reconciliation = ReconciliationDecision(
            user_id=user_id,
            month_start=month_start,
            surplus_amount=surplus_amount,
            processed=False,
        )
        db.add(reconciliation)
        db.commit()
        return reconciliation

    return _make_reconciliation
