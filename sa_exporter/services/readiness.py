"""Per-endpoint readiness from kube-state-metrics address counters.

``kube_endpoint_address`` reports one series per address with a ``ready``
label. Summing all of them gives the total, summing ``ready="false"`` gives
the not-ready part; the difference is what is available.
"""
from __future__ import annotations

import asyncio
import logging

from sa_exporter.core.errors import ConsistencyError, SAExporterError
from sa_exporter.metrics.prometheus import DIAGNOSTICS
from sa_exporter.models.schemas import EndpointReadiness, Sample, ServiceType
from sa_exporter.services.prom_client import QueryFn
from sa_exporter.services.topology import Topology

log = logging.getLogger("sa.readiness")

ADDRESS_METRIC = "kube_endpoint_address"


def _selector(matchers: str, window: str) -> str:
    selector = f"{ADDRESS_METRIC}{{{matchers}}}"
    if window:
        return f"avg_over_time({selector}[{window}])"
    return selector


def total_addresses_query(endpoints: str, window: str) -> str:
    """All addresses, ready or not, per endpoint."""
    matchers = 'endpoint=~"%s"' % endpoints
    return f"sum by (endpoint)({_selector(matchers, window)})"


def not_ready_addresses_query(endpoints: str, window: str) -> str:
    matchers = 'endpoint=~"%s",ready="false"' % endpoints
    return f"sum by (endpoint)({_selector(matchers, window)})"


async def _run(query: QueryFn, expression: str) -> list[Sample] | None:
    """Run ``expression``; a failure is logged and reported as None."""
    try:
        samples = await query(expression)
    except SAExporterError as e:
        DIAGNOSTICS.labels(kind="query").inc()
        log.warning("PromQL query failed, treating as empty: %s", e)
        return None
    log.debug("query %s returned %d samples", expression, len(samples))
    return samples


def _subtract_not_ready(available: dict[str, float], sample: Sample) -> None:
    endpoint = sample.labels.get("endpoint", "")
    if endpoint not in available:
        raise ConsistencyError(endpoint)
    available[endpoint] -= sample.value


async def resolve(
    type_: ServiceType, window: str, topology: Topology, query: QueryFn
) -> list[EndpointReadiness]:
    """Compute the available address count of every endpoint of ``type_``.

    Both queries run concurrently. A failed total query leaves nothing to
    report; a failed not-ready query leaves the totals untouched. Not-ready
    rows for endpoints without a total are dropped.
    """
    endpoints = topology.endpoint_set_expression(type_)
    if not endpoints:
        log.debug("no endpoints registered for type %s", type_.value)
        return []

    total, not_ready = await asyncio.gather(
        _run(query, total_addresses_query(endpoints, window)),
        _run(query, not_ready_addresses_query(endpoints, window)),
    )

    available: dict[str, float] = {}
    for sample in total or []:
        available[sample.labels.get("endpoint", "")] = sample.value

    if not_ready is not None:
        for sample in not_ready:
            try:
                _subtract_not_ready(available, sample)
            except ConsistencyError as e:
                DIAGNOSTICS.labels(kind="consistency").inc()
                log.error("%s", e)

    return [EndpointReadiness(endpoint=ep, available_count=count) for ep, count in available.items()]


def ready_value(count: float) -> float:
    """1.0 unless ``count`` is exactly zero.

    Negative counts (not-ready sum ahead of the total because of window skew)
    count as ready.
    """
    return 0.0 if count == 0.0 else 1.0
