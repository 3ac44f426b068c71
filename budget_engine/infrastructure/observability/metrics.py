"""Prometheus metrics for monitoring postings, reconciliation and decision outcomes"""

from prometheus_client import Counter, Histogram

# Obligation poster
postings_counter = Counter(
    "budget_postings_total",
    "Ledger effects posted by the obligation poster",
    ["effect"],  # subscription | pending_action | goal_contribution
)

unit_failure_counter = Counter(
    "budget_unit_failures_total",
    "Batch units skipped because of an error",
    ["job", "kind"],
)

# Reconciliation
reconciliation_counter = Counter(
    "budget_reconciliation_total",
    "Users evaluated by the monthly reconciler",
    ["outcome"],  # surplus | no_surplus | already_reconciled
)

decision_applied_counter = Counter(
    "budget_decisions_applied_total",
    "Reconciliation decisions applied",
    ["decision"],  # rollover | goal_contribution
)

job_duration_histogram = Histogram(
    "budget_job_duration_seconds",
    "Batch job wall-clock time",
    ["job"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_posting(effect: str) -> None:
    postings_counter.labels(effect=effect).inc()


def record_unit_failure(job: str, kind: str) -> None:
    unit_failure_counter.labels(job=job, kind=kind).inc()


def record_reconciliation(outcome: str) -> None:
    reconciliation_counter.labels(outcome=outcome).inc()


def record_decision_applied(decision: str) -> None:
    decision_applied_counter.labels(decision=decision).inc()
