"""Query composer: renders one PromQL query per (target metric, template kind) pair."""

import logging
from collections.abc import Iterable, Mapping, Sequence

from promtop.top.errors import CompositionError
from promtop.top.models import ComposedQuery, TemplateKind
from promtop.top.templates import DEFAULT_TEMPLATES

logger = logging.getLogger(__name__)

CPU_METRIC = "container_cpu_usage_seconds_total"
MEMORY_METRIC = "container_memory_usage_bytes"

DEFAULT_TARGET_METRICS: tuple[str, ...] = (CPU_METRIC, MEMORY_METRIC)

# Wraps every rendered query to attach the deployment's ``label_app`` to each
# series, grouping pods by the app that owns them. Braces are doubled for str.format.
LABEL_JOIN_TEMPLATE = (
    'sum by (pod, label_app) (kube_pod_labels{{pod!="", label_app!=""}})'
    " * on (pod) group_right(label_app)"
    " sum by (pod, namespace, node) ({query})"
)


def render_template(template: str, metric: str, range_: str) -> str:
    """Substitute the metric name and range into a query template."""
    try:
        return template.format(metric=metric, range=range_)
    except (KeyError, IndexError, ValueError) as e:
        raise CompositionError(f"composing base query template {template!r}: {e}") from e


def wrap_with_label_join(query: str, label_join: str = LABEL_JOIN_TEMPLATE) -> str:
    """Join ``label_app`` from kube_pod_labels onto the series of ``query`` by pod."""
    try:
        return label_join.format(query=query)
    except (KeyError, IndexError, ValueError) as e:
        raise CompositionError(f"composing label query template {label_join!r}: {e}") from e


def compose_queries(
    kinds: Iterable[TemplateKind],
    range_: str,
    metrics: Sequence[str] = DEFAULT_TARGET_METRICS,
    templates: Mapping[TemplateKind, str] = DEFAULT_TEMPLATES,
    label_join: str = LABEL_JOIN_TEMPLATE,
) -> list[ComposedQuery]:
    """Build the full query list for a run, ordered metric-major.

    Returns ``len(metrics) * len(kinds)`` queries. Any rendering failure is a
    programming error and raises CompositionError for the whole batch.
    """
    kinds = list(kinds)
    queries: list[ComposedQuery] = []
    for metric in metrics:
        for kind in kinds:
            template = templates.get(kind)
            if template is None:
                raise CompositionError(f"no query template registered for {kind}")
            rendered = render_template(template, metric, range_)
            queries.append(ComposedQuery(metric=metric, kind=kind, query=wrap_with_label_join(rendered, label_join)))

    logger.debug("Composed %d queries (%d metrics x %d kinds)", len(queries), len(metrics), len(kinds))
    return queries
