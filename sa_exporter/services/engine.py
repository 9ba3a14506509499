"""One availability aggregation cycle, run per scrape."""
from __future__ import annotations

import logging
import time

from sa_exporter.core.errors import ConnectivityError, SAExporterError
from sa_exporter.metrics.prometheus import CYCLE_DURATION
from sa_exporter.models.schemas import CycleResult, ServiceType
from sa_exporter.services import readiness
from sa_exporter.services.aggregator import build_rows, roll_up_products
from sa_exporter.services.prom_client import QueryFn
from sa_exporter.services.topology import Topology

log = logging.getLogger("sa.engine")

LIVENESS_QUERY = 'up{job="prometheus"}'


async def check_upstream(query: QueryFn) -> None:
    """Raise ConnectivityError unless the backend answers a trivial query."""
    try:
        await query(LIVENESS_QUERY)
    except SAExporterError as e:
        log.error("Prometheus dependency NOK: %s", e)
        if isinstance(e, ConnectivityError):
            raise
        raise ConnectivityError(str(e)) from e
    log.info("Prometheus dependency OK")


class AvailabilityEngine:
    """
    Computes service availability from the upstream backend.

    Holds the immutable topology and the query function; everything a cycle
    computes is local to that cycle, so concurrent scrapes do not interfere.
    """

    def __init__(self, topology: Topology, query: QueryFn, interactive_window: str = "", batch_window: str = ""):
        self.topology = topology
        self._query = query
        self._windows = {
            ServiceType.INTERACTIVE: interactive_window,
            ServiceType.BATCH: batch_window,
        }

    async def _rows(self, type_: ServiceType):
        items = await readiness.resolve(type_, self._windows[type_], self.topology, self._query)
        return build_rows(type_, items, self.topology.ownership)

    async def run_cycle(self) -> CycleResult:
        """Health check, then per-endpoint rows and product rollups.

        When the backend is down only the dependency status is reported.
        """
        start = time.perf_counter()
        try:
            try:
                await check_upstream(self._query)
            except ConnectivityError:
                return CycleResult(dependency_up=False)

            interactive = await self._rows(ServiceType.INTERACTIVE)
            batch = await self._rows(ServiceType.BATCH)
            types, overall = roll_up_products(interactive, batch)
            log.debug("Endpoint scraped")
            return CycleResult(
                dependency_up=True,
                rows=interactive + batch,
                type_rollups=types,
                overall=overall,
            )
        finally:
            elapsed = time.perf_counter() - start
            CYCLE_DURATION.observe(elapsed)
            log.info("Collect finished in %.3fs", elapsed)
