"""Top: one aggregation pass over the target metrics.

A run snapshots the current time once, executes every selected query at that
instant and collates the resulting instant vectors into one record per pod and
metric. It is not intended for continuous monitoring: each call performs a
single pass and returns.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from promtop.observability.metrics import RECORDS_TOTAL, RUNS_TOTAL
from promtop.prometheus import PrometheusQueryAPI
from promtop.top.aggregator import aggregate
from promtop.top.collector import collect
from promtop.top.composer import DEFAULT_TARGET_METRICS, LABEL_JOIN_TEMPLATE, compose_queries
from promtop.top.models import PodMetricTable, TemplateKind
from promtop.top.templates import DEFAULT_TEMPLATES, select_template_kinds

logger = logging.getLogger(__name__)

DEFAULT_RANGE = "10m"


class QueryConfig(BaseModel):
    """Inputs to a single run. Immutable for the run's duration.

    ``range`` uses the Prometheus duration format: an integer followed by one of
    ms, s, m, h, d, w, y (e.g. ``10m``). It is substituted into the templates as
    is; an invalid value is reported by Prometheus. The instant query ignores it.
    ``timeout`` bounds the whole run in seconds; None means no deadline.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    api: PrometheusQueryAPI
    query_type: str = ""
    range: str | None = None
    timeout: float | None = Field(default=None, gt=0)
    target_metrics: tuple[str, ...] = DEFAULT_TARGET_METRICS
    templates: Mapping[TemplateKind, str] = Field(default_factory=lambda: dict(DEFAULT_TEMPLATES))
    label_join: str = LABEL_JOIN_TEMPLATE


async def _run(cfg: QueryConfig, range_: str) -> PodMetricTable:
    # Snapshot the time once so every ranged query shares the same end point
    evaluated_at = datetime.now(UTC)

    kinds = select_template_kinds(cfg.query_type)
    queries = compose_queries(
        kinds,
        range_,
        metrics=cfg.target_metrics,
        templates=cfg.templates,
        label_join=cfg.label_join,
    )
    logger.info("Executing %d queries over %s at %s", len(queries), range_, evaluated_at.isoformat())

    results = await collect(cfg.api, queries, evaluated_at)
    return aggregate(results, range_, evaluated_at)


async def top(cfg: QueryConfig) -> PodMetricTable:
    """Run the selected queries against the target metrics and return the collated table.

    All-or-nothing: any composition, query or shape error (or the run's
    timeout expiring) propagates and no table is returned.
    """
    range_ = cfg.range or DEFAULT_RANGE
    try:
        async with asyncio.timeout(cfg.timeout):
            table = await _run(cfg, range_)
    except BaseException:
        RUNS_TOTAL.labels(status="error").inc()
        raise

    RUNS_TOTAL.labels(status="success").inc()
    RECORDS_TOTAL.inc(len(table))
    logger.info("Collected %d pod metric records", len(table))
    return table
