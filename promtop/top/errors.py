"""Exceptions raised by an aggregation run.

Any of these aborts the whole run: callers never receive a partial table.
"""


class TopError(Exception):
    """Base class for aggregation run failures."""


class CompositionError(TopError):
    """A query template could not be rendered."""


class QueryExecutionError(TopError):
    """A composed query failed against the query interface."""

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"query {query!r} failed: {reason}")


class UnexpectedResultTypeError(QueryExecutionError):
    """The query interface returned something other than an instant vector."""

    def __init__(self, query: str, result_type: str) -> None:
        self.result_type = result_type
        super().__init__(query, f"expected vector, got {result_type!r}")
