"""Application metrics using the Prometheus client library.

This module defines all metrics in one place — a single inventory of
everything the service measures.  Other modules import specific metrics
and increment/observe them at the point of action.

WHAT AN INDEXER NEEDS TO WATCH
--------------------------------
An event indexer fails quietly.  It never returns a 500 to anyone; it
just falls behind, or skips writes, and the read side slowly drifts from
the ledger.  The signals that catch that drift:

  - indexer_events_total{outcome}        applied vs duplicate vs deferred.
      A rising "deferred" rate means cross-stream ordering got worse
      (or a producer dropped events).
  - indexer_missing_dependency_total     which event kinds keep arriving
      before their causal parents.
  - indexer_dependency_read_failures     how often descriptive fields came
      from the static fallback instead of the authoritative source.
  - indexer_last_block (gauge)           compare against chain head for lag.
  - indexer_handler_duration_seconds     the recompute cascade is the one
      non-constant-time path; a fat tail here points at it.
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
# Indexer metrics
# ---------------------------------------------------------------------------

EVENTS_PROCESSED = Counter(
    "indexer_events_total",
    "Ledger events seen by the indexer, by outcome",
    ["contract", "event", "outcome"],  # applied|duplicate|deferred|unhandled|invalid
)

HANDLER_DURATION = Histogram(
    "indexer_handler_duration_seconds",
    "Time spent running one event handler and committing its writes",
    ["contract"],
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0],
)

MISSING_DEPENDENCY = Counter(
    "indexer_missing_dependency_total",
    "Events deferred because an entity they depend on does not exist yet",
    ["event"],
)

DEPENDENCY_READ_FAILURES = Counter(
    "indexer_dependency_read_failures_total",
    "Read-only dependency calls that failed and resolved to a fallback",
    ["call"],  # course_details|certificate_details
)

DEFERRED_EVENTS = Gauge(
    "indexer_deferred_events",
    "Events currently waiting for a missing dependency",
)

LAST_BLOCK = Gauge(
    "indexer_last_block",
    "Highest block number applied to the entity graph",
)

# ---------------------------------------------------------------------------
# Supporting services
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

QUEUE_DEPTH = Gauge(
    "event_queue_depth",
    "Number of ledger events waiting in a queue",
    ["queue_name"],
)
