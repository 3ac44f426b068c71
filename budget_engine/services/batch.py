"""Per-record failure isolation for batch runs"""

from typing import Callable, List, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_engine.domain.exceptions import TransientStoreError
from budget_engine.domain.models import UnitFailure
from budget_engine.infrastructure.observability.logging import log_unit_failure
from budget_engine.infrastructure.observability.metrics import record_unit_failure

T = TypeVar("T")


def run_unit(
    db: Session,
    job: str,
    kind: str,
    record_id: str,
    work: Callable[[], T],
    failures: List[UnitFailure],
) -> Tuple[bool, T | None]:
    """
    Run one unit of work in its own database transaction.

    Commits on success. On any error the unit is rolled back, logged, counted
    and appended to failures, and the caller moves on to the next record.
    Units committed earlier in the run are unaffected.

    Returns: (succeeded, work result)
    """
    try:
        result = work()
        db.commit()
        return True, result
    except SQLAlchemyError as e:
        db.rollback()
        error: Exception = TransientStoreError(f"Ledger store error: {e}")
    except Exception as e:
        db.rollback()
        error = e

    failures.append(UnitFailure(kind=kind, record_id=record_id, error=str(error)))
    record_unit_failure(job, kind)
    log_unit_failure(job, kind, record_id, error)
    return False, None
