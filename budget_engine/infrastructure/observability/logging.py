"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from budget_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_unit_failure(job: str, kind: str, record_id: str, error: Exception) -> None:
    """Log a record skipped by a batch run; it stays eligible for the next run"""
    logging.error(
        f"Failed to process {kind}",
        extra={
            "job": job,
            "step": "unit_failed",
            f"{kind}_id": record_id,
            "error_type": type(error).__name__,
            "error": str(error),
        },
    )


def log_job_summary(job: str, summary: Dict[str, Any], duration_ms: float) -> None:
    """Log the outcome counts of a batch run"""
    logging.info(
        "Batch run completed",
        extra={"job": job, "step": "job_complete", "duration_ms": duration_ms, **summary},
    )


def log_decision_applied(user_id: str, reconciliation_id: str, decision: str, amount: str) -> None:
    """Log a surplus disposition for audit"""
    logging.info(
        "Reconciliation decision applied",
        extra={
            "user_id": user_id,
            "reconciliation_id": reconciliation_id,
            "step": "decision_applied",
            "decision": decision,
            "amount": amount,
        },
    )
