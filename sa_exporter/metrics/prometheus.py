"""Prometheus metrics for the SA exporter.

Two kinds of metrics live here:

- process self-metrics (upstream query counts/latency, cycle duration,
  diagnostics), registered on the default registry;
- the service availability gauges, rebuilt on every scrape from a
  ``CycleResult`` through ``AvailabilityCollector`` and a throwaway registry.
"""
from __future__ import annotations

from typing import Iterator

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.core import GaugeMetricFamily, Metric

from sa_exporter.models.schemas import CycleResult

NAMESPACE = "sa"

UPSTREAM_QUERIES = Counter(
    "sa_exporter_upstream_queries_total", "Queries sent to the upstream Prometheus", ["status"]
)
UPSTREAM_LATENCY = Histogram(
    "sa_exporter_upstream_query_latency_seconds", "Upstream Prometheus query latency seconds"
)
CYCLE_DURATION = Histogram(
    "sa_exporter_cycle_duration_seconds", "Duration of one availability aggregation cycle"
)
DIAGNOSTICS = Counter(
    "sa_exporter_diagnostics_total", "Recovered problems seen while aggregating", ["kind"]
)


class AvailabilityCollector:
    """Expose a single cycle's result as SA gauges."""

    def __init__(self, result: CycleResult):
        self._result = result

    def describe(self) -> list[Metric]:
        return [self._up(), *self._availability()]

    def collect(self) -> Iterator[Metric]:
        yield self._up()
        if self._result.dependency_up:
            yield from self._availability()

    def _up(self) -> GaugeMetricFamily:
        # "dependancy" is the published label name; dashboards select on it.
        up = GaugeMetricFamily(
            f"{NAMESPACE}_prom_up", "Was the dependency up", labels=["dependancy"]
        )
        up.add_metric([self._result.dependency], 1.0 if self._result.dependency_up else 0.0)
        return up

    def _availability(self) -> list[GaugeMetricFamily]:
        service = GaugeMetricFamily(
            f"{NAMESPACE}_service",
            "Internal Service Availability, per endpoint",
            labels=["product", "type", "endpoint"],
        )
        for row in self._result.rows:
            service.add_metric([row.product, row.type.value, row.endpoint], row.value)

        service_type = GaugeMetricFamily(
            f"{NAMESPACE}_service_type",
            "Interactive or Batch Service Availability aggr",
            labels=["product", "type"],
        )
        for rollup in self._result.type_rollups:
            service_type.add_metric([rollup.product, rollup.type.value], rollup.value)

        overall = GaugeMetricFamily(
            f"{NAMESPACE}_service_overall", "Overall Service Availability aggr", labels=["product"]
        )
        for rollup in self._result.overall:
            overall.add_metric([rollup.product], rollup.value)

        return [service, service_type, overall]


def render(result: CycleResult) -> bytes:
    """Exposition text for a cycle's SA gauges only."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(AvailabilityCollector(result))
    return generate_latest(registry)
