"""Metric collector: executes composed queries at one evaluation instant.

Queries run one after another, in composer order, all evaluated at the same
timestamp. Any failure aborts the batch: a degraded result is treated as no
result.
"""

import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime

from promtop.observability.metrics import QUERIES_TOTAL, QUERY_DURATION
from promtop.prometheus import PrometheusData, PrometheusQueryAPI, PrometheusSeries
from promtop.top.errors import QueryExecutionError, UnexpectedResultTypeError
from promtop.top.models import ComposedQuery, QueryResult, Sample

logger = logging.getLogger(__name__)

VECTOR_RESULT_TYPE = "vector"


def _parse_sample(query: str, series: PrometheusSeries) -> Sample:
    """Convert one vector series (``{"metric": {...}, "value": [ts, "v"]}``) to a Sample."""
    value_pair = series.get("value", [])
    if len(value_pair) < 2:
        raise QueryExecutionError(query, f"malformed vector sample: {series!r}")
    try:
        ts = float(value_pair[0])
        value = float(value_pair[1])
    except (TypeError, ValueError) as e:
        raise QueryExecutionError(query, f"malformed vector sample: {series!r}") from e
    return Sample(
        labels=dict(series.get("metric", {})),
        value=value,
        timestamp=datetime.fromtimestamp(ts, tz=UTC),
    )


def parse_vector(query: str, data: PrometheusData) -> list[Sample]:
    """Validate that ``data`` is an instant vector and return its samples."""
    result_type = data.get("resultType", "unknown")
    if result_type != VECTOR_RESULT_TYPE:
        raise UnexpectedResultTypeError(query, result_type)
    return [_parse_sample(query, series) for series in data.get("result", [])]


async def execute_query(api: PrometheusQueryAPI, composed: ComposedQuery, evaluated_at: datetime) -> QueryResult:
    """Run a single composed query and validate its shape."""
    start = time.perf_counter()
    try:
        data, warnings = await api.query(composed.query, evaluated_at)
        vector = parse_vector(composed.query, data)
    except Exception:
        QUERIES_TOTAL.labels(kind=composed.kind, status="error").inc()
        raise
    finally:
        QUERY_DURATION.labels(kind=composed.kind).observe(time.perf_counter() - start)

    QUERIES_TOTAL.labels(kind=composed.kind, status="success").inc()
    for warning in warnings:
        logger.warning("Prometheus warning for %s %s: %s", composed.kind, composed.metric, warning)
    logger.debug("%s %s returned %d series", composed.kind, composed.metric, len(vector))
    return QueryResult(query=composed, vector=vector, warnings=warnings)


async def collect(
    api: PrometheusQueryAPI,
    queries: Sequence[ComposedQuery],
    evaluated_at: datetime,
) -> list[QueryResult]:
    """Execute every query sequentially at ``evaluated_at``.

    The first failure propagates (QueryExecutionError for transport and shape
    errors); no partial results are returned.
    """
    results: list[QueryResult] = []
    for composed in queries:
        results.append(await execute_query(api, composed, evaluated_at))
    return results
