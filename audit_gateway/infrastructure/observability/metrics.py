"""Prometheus metrics for monitoring risk classification, narrative calls, and throttling"""

from collections import Counter as Tally
from typing import Iterable

from prometheus_client import Counter, Histogram

# Classification metrics
assessment_counter = Counter(
    "audit_assessments_total",
    "Transactions classified by the rule engine",
    ["risk_level"],  # low | medium | high
)

report_counter = Counter(
    "audit_reports_total",
    "Audit reports generated",
)

# Narrative generator metrics
narrative_latency_histogram = Histogram(
    "narrative_latency_seconds",
    "Narrative generator response time",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
)

narrative_failure_counter = Counter(
    "narrative_failures_total",
    "Failed narrative generator calls",
    ["kind"],  # rate_limit | quota | timeout | http_error | transport | malformed | empty | config
)

# Throttling
rate_limited_counter = Counter(
    "rate_limited_requests_total",
    "Requests denied by the per-caller rate limiter",
    ["endpoint"],  # analyze | generate_report
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessments(risk_levels: Iterable[str]) -> None:
    """Record tier distribution of one analysis batch"""
    for level, count in Tally(risk_levels).items():
        assessment_counter.labels(risk_level=level).inc(count)
