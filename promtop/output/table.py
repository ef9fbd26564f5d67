"""Rendering of a PodMetricTable as CSV text or human-readable lines."""

import math

from promtop.top.models import AggregateRecord, PodMetricTable

CSV_HEADER = "metric, range, pod, namespace, label-app, quantile-95, max, min, avg, inst"

# Shared by the CSV time column and the query_time column of the SQLite sink
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S%z"


def float_to_string(value: float | None) -> str:
    """Shortest scientific notation that round-trips, e.g. ``1.5e+00``. None renders empty."""
    if value is None:
        return ""
    # Prometheus spellings for non-finite values
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    # Fewest digits that still round-trip to the same float
    for digits in range(17):
        candidate = f"{value:.{digits}e}"
        if float(candidate) == value:
            return candidate
    return f"{value:.16e}"


def format_timestamp(record: AggregateRecord) -> str:
    return record.query_time.strftime(TIMESTAMP_FORMAT) if record.query_time else ""


def record_to_csv(record: AggregateRecord) -> str:
    """One CSV line in CSV_HEADER column order, with a trailing comma."""
    fields = [
        record.metric,
        record.range,
        record.pod,
        record.namespace,
        record.label_app,
        float_to_string(record.q95_value),
        float_to_string(record.max_value),
        float_to_string(record.min_value),
        float_to_string(record.avg_value),
        float_to_string(record.inst_value),
    ]
    return ",".join(fields) + ","


def table_to_csv(table: PodMetricTable) -> str:
    lines = [CSV_HEADER]
    lines.extend(record_to_csv(record) for record in table)
    return "\n".join(lines) + "\n"


def _fmt(value: float | None) -> str:
    return "-" if value is None else f"{value:f}"


def format_record(record: AggregateRecord) -> str:
    """Single-line summary of a record for terminal output."""
    return (
        f"metric => {record.metric!r} "
        f"{{Pod={record.pod}, Namespace={record.namespace}, Label App={record.label_app}}}: "
        f"{{Avg: {_fmt(record.avg_value)}, Q95: {_fmt(record.q95_value)}, "
        f"Max: {_fmt(record.max_value)}, Min: {_fmt(record.min_value)}, Inst: {_fmt(record.inst_value)}}}"
    )


def format_table(table: PodMetricTable) -> str:
    lines = [f"Got {len(table)} results"]
    lines.extend(format_record(record) for record in table)
    return "\n".join(lines)
