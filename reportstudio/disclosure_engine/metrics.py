# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Report Studio Disclosure Engine

11 Prometheus metrics for disclosure engine monitoring.

Metrics:
    1.  rs_de_data_point_operations_total (Counter, labels: operation, outcome)
    2.  rs_de_rule_evaluations_total (Counter, labels: rule_type, result)
    3.  rs_de_gap_transitions_total (Counter, labels: target_status, outcome)
    4.  rs_de_consistency_runs_total (Counter, labels: status)
    5.  rs_de_consistency_issues_total (Counter, labels: severity)
    6.  rs_de_audit_entries_total (Counter, labels: action)
    7.  rs_de_operation_duration_seconds (Histogram, labels: operation)
    8.  rs_de_data_points (Gauge)
    9.  rs_de_audit_log_size (Gauge)
    10. rs_de_publications_total (Counter, labels: outcome)
    11. rs_de_invariant_violations_total (Counter, labels: error_type)

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Data point mutations by operation and outcome
de_data_point_operations_total = Counter(
    "rs_de_data_point_operations_total",
    "Total data point operations",
    labelnames=["operation", "outcome"],
)

# 2. Validation rule evaluations by rule kind and result
de_rule_evaluations_total = Counter(
    "rs_de_rule_evaluations_total",
    "Total section validation rule evaluations",
    labelnames=["rule_type", "result"],
)

# 3. Gap status transitions by target and outcome
de_gap_transitions_total = Counter(
    "rs_de_gap_transitions_total",
    "Total gap status transition attempts",
    labelnames=["target_status", "outcome"],
)

# 4. Consistency validation runs by aggregate status
de_consistency_runs_total = Counter(
    "rs_de_consistency_runs_total",
    "Total consistency validation runs",
    labelnames=["status"],
)

# 5. Consistency issues by severity
de_consistency_issues_total = Counter(
    "rs_de_consistency_issues_total",
    "Total consistency issues detected",
    labelnames=["severity"],
)

# 6. Audit log entries by action tag
de_audit_entries_total = Counter(
    "rs_de_audit_entries_total",
    "Total audit log entries appended",
    labelnames=["action"],
)

# 7. Store operation duration
de_operation_duration_seconds = Histogram(
    "rs_de_operation_duration_seconds",
    "Disclosure engine operation duration in seconds",
    labelnames=["operation"],
    buckets=(
        0.0005, 0.001, 0.0025, 0.005, 0.01,
        0.025, 0.05, 0.1, 0.25, 0.5, 1.0,
    ),
)

# 8. Data points currently held by the store
de_data_points = Gauge(
    "rs_de_data_points",
    "Number of data points currently held by the store",
)

# 9. Audit log size
de_audit_log_size = Gauge(
    "rs_de_audit_log_size",
    "Number of entries in the append-only audit log",
)

# 10. Period publications by outcome
de_publications_total = Counter(
    "rs_de_publications_total",
    "Total reporting period publication attempts",
    labelnames=["outcome"],
)

# 11. Invariant violations by exception type
de_invariant_violations_total = Counter(
    "rs_de_invariant_violations_total",
    "Total structural invariant violations raised",
    labelnames=["error_type"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_data_point_operation(operation: str, outcome: str) -> None:
    """Record a data point mutation attempt.

    Args:
        operation: Operation name (create, update, delete, approve, ...).
        outcome: success or rejected.
    """
    de_data_point_operations_total.labels(
        operation=operation, outcome=outcome,
    ).inc()


def record_rule_evaluation(rule_type: str, result: str) -> None:
    """Record a validation rule evaluation.

    Args:
        rule_type: Rule kind (non-negative, required-unit, ...).
        result: pass, fail or skip.
    """
    de_rule_evaluations_total.labels(
        rule_type=rule_type, result=result,
    ).inc()


def record_gap_transition(target_status: str, outcome: str) -> None:
    """Record a gap status transition attempt.

    Args:
        target_status: Requested gap status.
        outcome: success, rejected or denied.
    """
    de_gap_transitions_total.labels(
        target_status=target_status or "unset", outcome=outcome,
    ).inc()


def record_consistency_run(status: str) -> None:
    """Record a completed consistency validation run."""
    de_consistency_runs_total.labels(status=status).inc()


def record_consistency_issue(severity: str, count: int = 1) -> None:
    """Record consistency issues of one severity."""
    if count <= 0:
        return
    de_consistency_issues_total.labels(severity=severity).inc(count)


def record_audit_entry(action: str) -> None:
    de_audit_entries_total.labels(action=action).inc()


def record_operation_duration(operation: str, duration: float) -> None:
    """Record the duration of a store operation.

    Args:
        operation: Store operation name.
        duration: Duration in seconds.
    """
    de_operation_duration_seconds.labels(
        operation=operation,
    ).observe(duration)


def set_data_point_count(count: int) -> None:
    de_data_points.set(count)


def set_audit_log_size(count: int) -> None:
    de_audit_log_size.set(count)


def record_publication(outcome: str) -> None:
    """Record a publication attempt (published, overridden, blocked, rejected)."""
    de_publications_total.labels(outcome=outcome).inc()


def record_invariant_violation(error_type: str) -> None:
    de_invariant_violations_total.labels(error_type=error_type).inc()


__all__ = [
    # Metric objects
    "de_data_point_operations_total",
    "de_rule_evaluations_total",
    "de_gap_transitions_total",
    "de_consistency_runs_total",
    "de_consistency_issues_total",
    "de_audit_entries_total",
    "de_operation_duration_seconds",
    "de_data_points",
    "de_audit_log_size",
    "de_publications_total",
    "de_invariant_violations_total",
    # Helper functions
    "record_data_point_operation",
    "record_rule_evaluation",
    "record_gap_transition",
    "record_consistency_run",
    "record_consistency_issue",
    "record_audit_entry",
    "record_operation_duration",
    "set_data_point_count",
    "set_audit_log_size",
    "record_publication",
    "record_invariant_violation",
]
