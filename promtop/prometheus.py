"""Prometheus query interface and its HTTP implementation."""

import logging
import ssl
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Protocol, Self, TypedDict, runtime_checkable

import httpx

from promtop.config import Settings
from promtop.top.errors import QueryExecutionError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15
MAX_ERROR_BODY = 500


# --- Prometheus response types ---


class PrometheusSeries(TypedDict, total=False):
    metric: dict[str, str]
    value: list[float | str]
    values: list[list[float | str]]


class PrometheusData(TypedDict, total=False):
    resultType: str
    result: list[PrometheusSeries]


class PrometheusResponse(TypedDict, total=False):
    status: str
    error: str
    errorType: str
    warnings: list[str]
    data: PrometheusData


@runtime_checkable
class PrometheusQueryAPI(Protocol):
    """Anything that can evaluate an instant PromQL query at a fixed time."""

    async def query(self, query: str, time: datetime) -> tuple[PrometheusData, list[str]]:
        """Return the query's data payload and any warnings; raise QueryExecutionError on failure."""
        ...


# --- HTTP implementation ---


def _ssl_verify(settings: Settings) -> ssl.SSLContext | bool:
    """Build the SSL verification parameter for httpx.

    A CA bundle path takes precedence; otherwise verification follows the flag.
    """
    if not settings.prometheus_verify_ssl:
        return False
    if settings.prometheus_ca_cert:
        return ssl.create_default_context(cafile=settings.prometheus_ca_cert)
    return True


def _bearer_token(settings: Settings) -> str:
    """Resolve the bearer token, preferring an explicit token over the token file."""
    if settings.prometheus_token:
        return settings.prometheus_token
    if settings.prometheus_token_file:
        return Path(settings.prometheus_token_file).read_text(encoding="utf-8").strip()
    return ""


class HttpPrometheusAPI:
    """Instant queries against ``{base_url}/api/v1/query`` over a shared httpx client.

    Use as an async context manager so the underlying client is closed.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        verify: ssl.SSLContext | bool = True,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Sent per request so an injected client is never modified
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, verify=verify)

    @classmethod
    def from_settings(cls, settings: Settings) -> Self:
        return cls(
            settings.prometheus_url,
            token=_bearer_token(settings),
            verify=_ssl_verify(settings),
            timeout=settings.prometheus_timeout_seconds,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def query(self, query: str, time: datetime) -> tuple[PrometheusData, list[str]]:
        """Evaluate ``query`` at ``time`` and return its data payload plus warnings."""
        params = {"query": query, "time": f"{time.timestamp():.3f}"}
        url = f"{self.base_url}/api/v1/query"

        logger.debug("Prometheus instant query: %s", query)
        try:
            response = await self._client.get(url, params=params, headers=self._headers, timeout=self.timeout)
            _ = response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise QueryExecutionError(
                query, f"HTTP {e.response.status_code} - {e.response.text[:MAX_ERROR_BODY]}"
            ) from e
        except httpx.ConnectError as e:
            raise QueryExecutionError(query, f"cannot connect to Prometheus at {self.base_url}: {e}") from e
        except httpx.TimeoutException as e:
            raise QueryExecutionError(query, f"timed out after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise QueryExecutionError(query, f"transport error: {e}") from e

        try:
            body: PrometheusResponse = response.json()  # pyright: ignore[reportAny]
        except ValueError as e:
            raise QueryExecutionError(query, f"invalid JSON response: {response.text[:MAX_ERROR_BODY]}") from e

        if body.get("status") != "success":
            raise QueryExecutionError(query, body.get("error", "unknown error"))

        return body.get("data", {}), list(body.get("warnings", []))
