"""Prometheus metric definitions for promtop self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

QUERY_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0)

# ---------------------------------------------------------------------------
# Query-level metrics (populated by the collector)
# ---------------------------------------------------------------------------

QUERY_DURATION = Histogram(
    "promtop_query_duration_seconds",
    "Duration of individual Prometheus queries in seconds",
    labelnames=["kind"],
    buckets=QUERY_DURATION_BUCKETS,
)

QUERIES_TOTAL = Counter(
    "promtop_queries_total",
    "Total number of Prometheus queries executed",
    labelnames=["kind", "status"],
)

# ---------------------------------------------------------------------------
# Run-level metrics
# ---------------------------------------------------------------------------

RUNS_TOTAL = Counter(
    "promtop_runs_total",
    "Total number of aggregation runs",
    labelnames=["status"],
)

RECORDS_TOTAL = Counter(
    "promtop_records_total",
    "Total number of aggregate records produced",
)
