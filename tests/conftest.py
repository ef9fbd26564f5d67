"""Shared pytest configuration and fixtures."""

from collections.abc import Callable, Generator
from datetime import datetime
from typing import Any
from unittest.mock import patch

import pytest

from promtop.config import Settings, StoreSettings, get_settings, get_store_settings
from promtop.prometheus import PrometheusData, PrometheusSeries

Responder = Callable[[str], PrometheusData]


def vector(*series: PrometheusSeries) -> PrometheusData:
    """Build an instant-vector data payload from series dicts."""
    return {"resultType": "vector", "result": list(series)}


def series(value: float | str, ts: float = 1700000000.0, **labels: str) -> PrometheusSeries:
    return {"metric": dict(labels), "value": [ts, str(value)]}


class FakePrometheusAPI:
    """In-memory query interface: answers each query via ``responder`` and records calls."""

    def __init__(self, responder: Responder, warnings: list[str] | None = None) -> None:
        self.responder = responder
        self.warnings = warnings or []
        self.calls: list[tuple[str, datetime]] = []

    async def query(self, query: str, time: datetime) -> tuple[PrometheusData, list[str]]:
        self.calls.append((query, time))
        return self.responder(query), list(self.warnings)


@pytest.fixture
def make_api() -> Callable[..., FakePrometheusAPI]:
    """Factory for FakePrometheusAPI instances."""
    return FakePrometheusAPI


@pytest.fixture
def make_vector() -> Callable[..., PrometheusData]:
    return vector


@pytest.fixture
def make_series() -> Callable[..., PrometheusSeries]:
    return series


@pytest.fixture(autouse=True)
def _no_dotenv() -> Generator[None, None, None]:
    """Block .env loading so tests never pick up a developer's local configuration."""
    get_settings.cache_clear()
    get_store_settings.cache_clear()
    originals = {cls: cls.model_config.get("env_file") for cls in (StoreSettings, Settings)}
    for cls in originals:
        cls.model_config["env_file"] = None

    try:
        yield
    finally:
        for cls, original in originals.items():
            cls.model_config["env_file"] = original
        get_settings.cache_clear()
        get_store_settings.cache_clear()


@pytest.fixture
def mock_settings(tmp_path: Any) -> Generator[Any, None, None]:
    """Provide fake settings so tests don't need a .env file or environment.

    Patches get_settings at every import site so cached references are overridden.
    """
    fake_settings = Settings(
        prometheus_url="http://prometheus.test:9090",
        prometheus_token="test-token",
        db_path=str(tmp_path / "promtop.db"),
        build_version="test-build",
    )
    with (
        patch("promtop.config.get_settings", return_value=fake_settings),
        patch("promtop.cli.get_settings", return_value=fake_settings),
        patch("promtop.cli.get_store_settings", return_value=fake_settings),
    ):
        yield fake_settings
