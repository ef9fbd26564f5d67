"""Aggregator: folds samples from every query into one record per pod and metric.

Each query is executed independently, producing up to one value per pod per
kind. Samples are keyed by a fingerprint of (namespace, pod, metric) so values
from different kinds land in the same record.
"""

import hashlib
import logging
from collections.abc import Iterable
from datetime import datetime

from promtop.top.models import AggregateRecord, PodMetricTable, QueryResult

logger = logging.getLogger(__name__)

NAMESPACE_LABEL = "namespace"
POD_LABEL = "pod"
APP_LABEL = "label_app"

_FINGERPRINT_SEPARATOR = "\x00"


def fingerprint(namespace: str, pod: str, metric: str) -> str:
    """Deterministic identity for a (namespace, pod, metric) triple.

    Pure: every call hashes from scratch, so results never depend on call order.
    """
    key = _FINGERPRINT_SEPARATOR.join((namespace, pod, metric)).encode("utf-8")
    return hashlib.blake2b(key, digest_size=8).hexdigest()


class Aggregator:
    """Owns the fingerprint -> record table for a single run."""

    def __init__(self, range_: str, evaluated_at: datetime) -> None:
        self.range = range_
        self.evaluated_at = evaluated_at
        self._table: dict[str, AggregateRecord] = {}

    def __len__(self) -> int:
        return len(self._table)

    def fold(self, result: QueryResult) -> None:
        """Merge every sample of one query result into the table."""
        metric = result.query.metric
        field = result.query.kind.field

        for sample in result.vector:
            # Missing labels degrade to "" instead of aborting the run
            namespace = sample.labels.get(NAMESPACE_LABEL, "")
            pod = sample.labels.get(POD_LABEL, "")
            if not namespace or not pod:
                logger.debug("Sample for %s missing namespace/pod labels: %s", metric, sample.labels)

            key = fingerprint(namespace, pod, metric)
            record = self._table.get(key)
            if record is None:
                record = AggregateRecord()
                self._table[key] = record

            record.namespace = namespace
            record.pod = pod
            record.label_app = sample.labels.get(APP_LABEL, "")
            record.metric = metric
            record.range = self.range
            record.query_time = self.evaluated_at
            setattr(record, field, sample.value)

    def records(self) -> PodMetricTable:
        """Return every record accumulated so far. Order carries no meaning."""
        return list(self._table.values())


def aggregate(results: Iterable[QueryResult], range_: str, evaluated_at: datetime) -> PodMetricTable:
    """Fold all query results of a run into the final table."""
    aggregator = Aggregator(range_, evaluated_at)
    for result in results:
        aggregator.fold(result)
    logger.debug("Folded results into %d records", len(aggregator))
    return aggregator.records()
