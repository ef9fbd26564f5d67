"""Template registry: which aggregations run for a requested query type.

Supported queries are the 95th percentile over time, the average, max and min
over time, and the instantaneous value of each target metric. Queries are
deliberately shaped to return instant vectors: they may span a window of time,
but each yields a single value per series, evaluated at one point in time.
"""

import logging
from collections.abc import Mapping
from enum import StrEnum

from promtop.top.models import TemplateKind

logger = logging.getLogger(__name__)


class QueryType(StrEnum):
    QUANTILE = "quantile"
    AVERAGE = "average"
    INSTANT = "instant"
    ALL = "all"


# Short flags accepted alongside the full names (e.g. ``--query-type q``)
_QUERY_TYPE_ALIASES: dict[str, QueryType] = {
    "q": QueryType.QUANTILE,
    "quantile": QueryType.QUANTILE,
    "a": QueryType.AVERAGE,
    "average": QueryType.AVERAGE,
    "avg": QueryType.AVERAGE,
    "i": QueryType.INSTANT,
    "instant": QueryType.INSTANT,
}

# Rendering templates, filled with str.format(metric=..., range=...).
# The instant template ignores the range.
DEFAULT_TEMPLATES: Mapping[TemplateKind, str] = {
    TemplateKind.QUANTILE_95: "quantile_over_time(.95, {metric}[{range}])",
    TemplateKind.AVERAGE: "avg_over_time({metric}[{range}])",
    TemplateKind.MAXIMUM: "max_over_time({metric}[{range}])",
    TemplateKind.MINIMUM: "min_over_time({metric}[{range}])",
    TemplateKind.INSTANT: "{metric}",
}

# Instant is left out: a bare point-in-time reading says little without a window.
DEFAULT_KINDS: tuple[TemplateKind, ...] = (
    TemplateKind.QUANTILE_95,
    TemplateKind.AVERAGE,
    TemplateKind.MAXIMUM,
    TemplateKind.MINIMUM,
)

_KINDS_BY_QUERY_TYPE: dict[QueryType, tuple[TemplateKind, ...]] = {
    QueryType.QUANTILE: (TemplateKind.QUANTILE_95,),
    QueryType.AVERAGE: (TemplateKind.AVERAGE,),
    QueryType.INSTANT: (TemplateKind.INSTANT,),
    QueryType.ALL: DEFAULT_KINDS,
}


def parse_query_type(value: str | None) -> QueryType:
    """Map a user-supplied selector to a QueryType. Unknown values mean ALL."""
    if not value:
        return QueryType.ALL
    return _QUERY_TYPE_ALIASES.get(value.strip().lower(), QueryType.ALL)


def select_template_kinds(query_type: str | None) -> list[TemplateKind]:
    """Return the ordered template kinds to execute for a query-type selector.

    Never raises and never returns an empty list: a typo in the selector falls
    through to the default set rather than failing the run.
    """
    resolved = parse_query_type(query_type)
    kinds = list(_KINDS_BY_QUERY_TYPE[resolved])
    logger.debug("Query type %r resolved to %s: %s", query_type, resolved, [str(k) for k in kinds])
    return kinds
