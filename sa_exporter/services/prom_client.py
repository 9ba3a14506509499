"""HTTP client wrapper for the Prometheus query API.

Issues instant queries against ``/api/v1/query`` and normalizes the vector
result into ``Sample`` objects. Includes basic Prometheus metrics for request
counts and latency. No retries: a failed query is reported to the caller.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import httpx

from sa_exporter.core.config import Settings
from sa_exporter.core.errors import ConnectivityError, QueryError
from sa_exporter.metrics.prometheus import UPSTREAM_LATENCY, UPSTREAM_QUERIES
from sa_exporter.models.schemas import Sample

log = logging.getLogger("sa.prometheus")

QueryFn = Callable[[str], Awaitable[list[Sample]]]


def _parse_vector(query: str, payload: object) -> list[Sample]:
    """
    Turn a Prometheus API response body into samples.

    Expects:
      {"status": "success",
       "data": {"resultType": "vector",
                "result": [{"metric": {...}, "value": [<ts>, "<float>"]}, ...]}}
    """
    if not isinstance(payload, dict):
        raise QueryError(query, "response is not a JSON object")
    if payload.get("status") != "success":
        raise QueryError(query, f"{payload.get('errorType', 'error')}: {payload.get('error', 'unknown')}")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise QueryError(query, "response has no data")
    if data.get("resultType") != "vector":
        raise QueryError(query, f"expected a vector, got {data.get('resultType')!r}")

    samples: list[Sample] = []
    for item in data.get("result") or []:
        try:
            _, raw = item["value"]
            samples.append(Sample(labels=item.get("metric") or {}, value=float(raw)))
        except (KeyError, TypeError, ValueError) as e:
            raise QueryError(query, f"malformed sample {item!r}") from e
    return samples


class PromClient:
    """
    Tiny HTTP client wrapper for the Prometheus HTTP API.

    Holds an httpx.AsyncClient for connection pooling; instances are callable
    and satisfy ``QueryFn``.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self._client = client
        self._base = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "PromClient":
        return cls(client, settings.prom_url)

    def _query_url(self) -> str:
        return f"{self._base}/api/v1/query"

    async def query(self, expression: str) -> list[Sample]:
        """
        Run an instant query and return its samples.

        Raises ConnectivityError when the server cannot be reached and
        QueryError when it answers with an error or an unusable body.
        """
        try:
            with UPSTREAM_LATENCY.time():
                resp = await self._client.get(self._query_url(), params={"query": expression})
        except (httpx.TransportError, httpx.InvalidURL) as e:
            UPSTREAM_QUERIES.labels(status="error").inc()
            raise ConnectivityError(f"cannot reach {self._base}: {e}") from e
        except httpx.HTTPError as e:
            # reached the server but could not read its answer, e.g. DecodingError
            UPSTREAM_QUERIES.labels(status="error").inc()
            raise QueryError(expression, f"{type(e).__name__}: {e}") from e

        UPSTREAM_QUERIES.labels(status=str(resp.status_code)).inc()
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if resp.status_code != 200 and not isinstance(payload, dict):
            raise QueryError(expression, f"HTTP {resp.status_code}")
        return _parse_vector(expression, payload)

    __call__ = query
