"""Data model for one aggregation run: template kinds, composed queries, samples and records."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class TemplateKind(StrEnum):
    """Aggregation applied to a target metric. Each kind fills one record field."""

    QUANTILE_95 = "quantile_95"
    AVERAGE = "average"
    MAXIMUM = "maximum"
    MINIMUM = "minimum"
    INSTANT = "instant"

    @property
    def field(self) -> str:
        """Name of the AggregateRecord attribute populated by this kind."""
        return _RECORD_FIELDS[self]


_RECORD_FIELDS: dict[TemplateKind, str] = {
    TemplateKind.QUANTILE_95: "q95_value",
    TemplateKind.AVERAGE: "avg_value",
    TemplateKind.MAXIMUM: "max_value",
    TemplateKind.MINIMUM: "min_value",
    TemplateKind.INSTANT: "inst_value",
}


class ComposedQuery(BaseModel):
    """A fully rendered PromQL string, tagged with the metric and kind it came from."""

    model_config = ConfigDict(frozen=True)

    metric: str
    kind: TemplateKind
    query: str


class Sample(BaseModel):
    """One series of an instant vector: its labels, scalar value and timestamp."""

    model_config = ConfigDict(frozen=True)

    labels: dict[str, str] = Field(default_factory=dict)
    value: float
    timestamp: datetime


class QueryResult(BaseModel):
    """The instant vector returned for one composed query."""

    query: ComposedQuery
    vector: list[Sample] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AggregateRecord(BaseModel):
    """All aggregations observed for one (namespace, pod, metric) identity.

    Scalar fields stay None until a sample of the matching kind is folded in.
    """

    metric: str = ""
    range: str = ""
    pod: str = ""
    namespace: str = ""
    label_app: str = ""
    query_time: datetime | None = None

    q95_value: float | None = None
    avg_value: float | None = None
    max_value: float | None = None
    min_value: float | None = None
    inst_value: float | None = None


PodMetricTable = list[AggregateRecord]
