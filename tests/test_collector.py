"""Unit tests for the metric collector, using an in-memory query interface."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from prometheus_client import REGISTRY

from promtop.prometheus import PrometheusData
from promtop.top.collector import collect, parse_vector
from promtop.top.composer import compose_queries
from promtop.top.errors import QueryExecutionError, UnexpectedResultTypeError
from promtop.top.models import TemplateKind

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)


def _sample(metric_name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(metric_name, labels or {}) or 0.0


class TestParseVector:
    def test_parses_samples(self, make_vector: Callable[..., PrometheusData], make_series: Any) -> None:
        data = make_vector(make_series("1.5", ts=1700000000, namespace="ns", pod="p1", label_app="web"))
        samples = parse_vector("q", data)
        assert len(samples) == 1
        assert samples[0].value == 1.5
        assert samples[0].labels == {"namespace": "ns", "pod": "p1", "label_app": "web"}
        assert samples[0].timestamp == datetime.fromtimestamp(1700000000, tz=UTC)

    def test_empty_vector(self, make_vector: Callable[..., PrometheusData]) -> None:
        assert parse_vector("q", make_vector()) == []

    def test_matrix_rejected(self) -> None:
        with pytest.raises(UnexpectedResultTypeError) as exc_info:
            parse_vector("rate(x[5m])", {"resultType": "matrix", "result": []})
        assert exc_info.value.result_type == "matrix"
        assert exc_info.value.query == "rate(x[5m])"

    def test_missing_result_type_rejected(self) -> None:
        with pytest.raises(UnexpectedResultTypeError, match="unknown"):
            parse_vector("q", {})

    def test_malformed_value_rejected(self) -> None:
        data: PrometheusData = {"resultType": "vector", "result": [{"metric": {}, "value": [1700000000]}]}
        with pytest.raises(QueryExecutionError, match="malformed vector sample"):
            parse_vector("q", data)

    def test_special_float_values(self, make_vector: Callable[..., PrometheusData], make_series: Any) -> None:
        samples = parse_vector("q", make_vector(make_series("NaN"), make_series("+Inf")))
        assert samples[0].value != samples[0].value
        assert samples[1].value == float("inf")


class TestCollect:
    async def test_executes_in_order_at_one_timestamp(
        self, make_api: Any, make_vector: Callable[..., PrometheusData]
    ) -> None:
        api = make_api(lambda q: make_vector())
        queries = compose_queries([TemplateKind.QUANTILE_95, TemplateKind.AVERAGE], "10m")

        results = await collect(api, queries, NOW)

        assert [call[0] for call in api.calls] == [q.query for q in queries]
        assert {call[1] for call in api.calls} == {NOW}
        assert [r.query for r in results] == queries

    async def test_non_vector_result_fails_whole_batch(self, make_api: Any, make_vector: Any) -> None:
        def responder(query: str) -> PrometheusData:
            if "avg_over_time" in query:
                return {"resultType": "scalar", "result": []}
            return make_vector()

        api = make_api(responder)
        queries = compose_queries([TemplateKind.QUANTILE_95, TemplateKind.AVERAGE, TemplateKind.MAXIMUM], "10m")

        with pytest.raises(UnexpectedResultTypeError):
            await collect(api, queries, NOW)
        # Stops at the first failure
        assert len(api.calls) == 2

    async def test_backend_error_propagates(self, make_api: Any) -> None:
        def responder(query: str) -> PrometheusData:
            raise QueryExecutionError(query, "HTTP 503 - unavailable")

        api = make_api(responder)
        queries = compose_queries([TemplateKind.AVERAGE], "10m")

        with pytest.raises(QueryExecutionError, match="503"):
            await collect(api, queries, NOW)
        assert len(api.calls) == 1

    async def test_warnings_kept_and_logged(
        self, make_api: Any, make_vector: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        api = make_api(lambda q: make_vector(), warnings=["query touched too many samples"])
        queries = compose_queries([TemplateKind.MINIMUM], "10m", metrics=["up"])

        with caplog.at_level("WARNING"):
            results = await collect(api, queries, NOW)

        assert results[0].warnings == ["query touched too many samples"]
        assert "too many samples" in caplog.text

    async def test_records_query_metrics(self, make_api: Any, make_vector: Any) -> None:
        success = {"kind": "maximum", "status": "success"}
        error = {"kind": "minimum", "status": "error"}
        before_success = _sample("promtop_queries_total", success)
        before_error = _sample("promtop_queries_total", error)

        ok_api = make_api(lambda q: make_vector())
        await collect(ok_api, compose_queries([TemplateKind.MAXIMUM], "10m", metrics=["up"]), NOW)

        bad_api = make_api(lambda q: {"resultType": "matrix", "result": []})
        with pytest.raises(UnexpectedResultTypeError):
            await collect(bad_api, compose_queries([TemplateKind.MINIMUM], "10m", metrics=["up"]), NOW)

        assert _sample("promtop_queries_total", success) == before_success + 1
        assert _sample("promtop_queries_total", error) == before_error + 1
