"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import the metric and increment it at the point of action.
HTTP metrics are fed by MetricsMiddleware, workflow counters by the
services, idempotency and rate-limit counters by their gates.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # user|ip
)

IDEMPOTENCY_REQUESTS = Counter(
    "idempotency_requests_total",
    "Mutating requests seen by the idempotency gate, by outcome",
    ["result"],  # executed|replayed|in_flight|missing_key
)

# ---------------------------------------------------------------------------
# Learning workflow
# ---------------------------------------------------------------------------

ENROLLMENTS_CREATED = Counter(
    "enrollments_created_total",
    "Enrollments created",
)

LESSONS_COMPLETED = Counter(
    "lesson_completions_total",
    "Lesson completion updates by whether the completion set changed",
    ["result"],  # new|repeat
)

COURSES_COMPLETED = Counter(
    "courses_completed_total",
    "Enrollments that transitioned to completed",
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates issued",
)

COURSE_STATUS_CHANGES = Counter(
    "course_status_changes_total",
    "Course publication workflow transitions",
    ["to_status"],
)
