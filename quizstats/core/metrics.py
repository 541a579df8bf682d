"""Prometheus metric inventory.

Every metric the service exports is declared here so the full list can
be read in one place.  Modules import the metric they own and update it
at the point of action.

Domain counters worth watching on a dashboard:

  quiz_events_total{result="duplicate"}
      Re-delivered quizzes that were absorbed by the quizId check.  A
      sudden climb usually means a client retry loop, not a bug here.

  period_rollovers_total{period_kind}
      Windows closed and archived.  Daily rollovers should track the
      number of active users per day.

  progress_save_conflicts_total
      Lost optimistic-concurrency races.  Non-zero is normal under
      parallel writers; a steady rate means the per-user lock is not
      shared between instances (REDIS_URL missing).
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress engine metrics
# ---------------------------------------------------------------------------

QUIZ_EVENTS = Counter(
    "quiz_events_total",
    "Quiz completion events by ingest outcome",
    ["result"],  # applied | duplicate | invalid
)

PERIOD_ROLLOVERS = Counter(
    "period_rollovers_total",
    "Progress windows closed and archived",
    ["period_kind"],
)

SAVE_CONFLICTS = Counter(
    "progress_save_conflicts_total",
    "Optimistic concurrency conflicts when saving progress state",
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Dashboard cache lookups by result",
    ["operation"],  # hit | miss
)
