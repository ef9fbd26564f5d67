"""SQLite sink for collated pod metrics: connection management, schema init, insert and read-back.

All database operations use parameterized queries. The schema is auto-created
via CREATE TABLE IF NOT EXISTS (idempotent).
"""

import logging
import sqlite3
from typing import TypedDict

from promtop.output.table import format_timestamp
from promtop.top.models import PodMetricTable

logger = logging.getLogger(__name__)

TABLE = "collated_metrics"

_SCHEMA_SQL = f"""\
CREATE TABLE IF NOT EXISTS {TABLE} (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    build        TEXT NOT NULL DEFAULT '',
    metric       TEXT NOT NULL,
    pod          TEXT NOT NULL,
    namespace    TEXT NOT NULL,
    label_app    TEXT NOT NULL DEFAULT '',
    query_time   TEXT NOT NULL,
    query_range  TEXT NOT NULL,
    avg_value    REAL,
    inst_value   REAL,
    q95_value    REAL,
    max_value    REAL,
    min_value    REAL
);
CREATE INDEX IF NOT EXISTS idx_collated_metric_time ON {TABLE}(metric, query_time);
"""

COLUMNS: tuple[str, ...] = (
    "build",
    "metric",
    "pod",
    "namespace",
    "label_app",
    "query_time",
    "query_range",
    "avg_value",
    "inst_value",
    "q95_value",
    "max_value",
    "min_value",
)


class StoredRow(TypedDict):
    id: int
    build: str
    metric: str
    pod: str
    namespace: str
    label_app: str
    query_time: str  # TIMESTAMP_FORMAT
    query_range: str
    avg_value: float | None
    inst_value: float | None
    q95_value: float | None
    max_value: float | None
    min_value: float | None


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a SQLite connection with rows addressable by column name.

    Pass ":memory:" for in-memory databases (tests).
    """
    if not db_path:
        msg = "SQLite sink not configured (PROMTOP_DB_PATH is empty)"
        raise ValueError(msg)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the table and index if they don't exist (idempotent)."""
    conn.executescript(_SCHEMA_SQL)


def save_records(conn: sqlite3.Connection, table: PodMetricTable, *, build: str = "") -> int:
    """Insert one row per record in a single transaction. Returns the number of rows inserted."""
    if not table:
        return 0

    placeholders = ", ".join("?" for _ in COLUMNS)
    rows = [
        (
            build,
            record.metric,
            record.pod,
            record.namespace,
            record.label_app,
            format_timestamp(record),
            record.range,
            record.avg_value,
            record.inst_value,
            record.q95_value,
            record.max_value,
            record.min_value,
        )
        for record in table
    ]
    with conn:
        cursor = conn.executemany(
            f"INSERT INTO {TABLE} ({', '.join(COLUMNS)}) VALUES ({placeholders})",
            rows,
        )
    inserted = cursor.rowcount if cursor.rowcount >= 0 else len(rows)
    logger.info("Insert success, updated %d rows", inserted)
    return inserted


def get_records(conn: sqlite3.Connection, *, metric: str | None = None, limit: int = 100) -> list[StoredRow]:
    """Retrieve stored rows, most recent query first, optionally for one metric."""
    if metric:
        rows = conn.execute(
            f"SELECT * FROM {TABLE} WHERE metric = ? ORDER BY query_time DESC, id DESC LIMIT ?",
            (metric, limit),
        ).fetchall()
    else:
        rows = conn.execute(
            f"SELECT * FROM {TABLE} ORDER BY query_time DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_stored(r) for r in rows]


def _row_to_stored(row: sqlite3.Row) -> StoredRow:
    return StoredRow(
        id=row["id"],
        build=row["build"],
        metric=row["metric"],
        pod=row["pod"],
        namespace=row["namespace"],
        label_app=row["label_app"],
        query_time=row["query_time"],
        query_range=row["query_range"],
        avg_value=row["avg_value"],
        inst_value=row["inst_value"],
        q95_value=row["q95_value"],
        max_value=row["max_value"],
        min_value=row["min_value"],
    )


def format_stored_row(row: StoredRow) -> str:
    return (
        f"Ver: {row['build'] or '-'} | Metric: {row['metric']} | Pod: {row['namespace']}/{row['pod']} "
        f"| Avg: {row['avg_value']} | Q95: {row['q95_value']} | Time: {row['query_time']}"
    )
