"""Application metrics using the Prometheus client library.

Every metric the service exports is defined here, so this file doubles
as the inventory of what is measured.  Other modules import a metric
and increment/observe it where the behavior happens.

Counters only go up and are read as rates in PromQL
(``rate(lecture_completions_total{result="completed"}[5m])``).  The
active-requests gauge moves both ways.  The duration histogram is what
``histogram_quantile`` turns into p95/p99 latency.

Prometheus pulls: it scrapes GET /metrics every few seconds.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
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
    # Catalog reads are single-document lookups (5-25ms); completions do
    # two course reads and one user write, so they sit a bucket or two up.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Domain metrics
# ---------------------------------------------------------------------------

ENROLLMENTS = Counter(
    "enrollments_total",
    "Enrollment attempts by result",
    ["result"],  # created|already_enrolled
)

LECTURE_COMPLETIONS = Counter(
    "lecture_completions_total",
    "Mark-lecture-complete calls by result",
    ["result"],  # completed|already_completed|locked|not_enrolled|stale
)

CASCADE_PRUNES = Counter(
    "cascade_prunes_total",
    "Bulk clean-ups of user enrollment state after catalog deletions",
    ["kind", "outcome"],  # kind: lectures|course, outcome: ok|failed
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit|miss
)

TOKEN_BLACKLIST_CHECKS = Counter(
    "token_blacklist_checks_total",
    "Token blacklist lookups by result",
    ["result"],  # revoked|valid
)
