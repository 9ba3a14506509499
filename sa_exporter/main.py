"""SA exporter FastAPI application.

Creates the exporter service, loads the service map, wires routes, configures
logging, and exposes readiness, health and Prometheus metrics endpoints.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Sequence

import httpx
import uvicorn
from fastapi import FastAPI

from sa_exporter import __version__
from sa_exporter.api.routes import metrics, router
from sa_exporter.core.config import Settings, settings as default_settings
from sa_exporter.core.logging import setup_logging
from sa_exporter.models.schemas import ServiceRecord
from sa_exporter.services.engine import AvailabilityEngine
from sa_exporter.services.prom_client import PromClient
from sa_exporter.services.topology import Topology, find_service_map, load_services

log = logging.getLogger("sa.main")


def load_topology(settings: Settings) -> Topology:
    """Build the topology from the override directory or the default map."""
    path = find_service_map(settings.mapped_services_dir, settings.services_file)
    return Topology.build(load_services(path))


def create_app(
    settings: Settings = default_settings,
    records: Sequence[ServiceRecord] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application.

    ``records`` replaces the service map file and ``transport`` the network
    transport of the Prometheus client; both exist for tests and embedding.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan.

        Loads the topology once and keeps the HTTP pool and the engine on
        ``app.state`` for the duration of the app.
        """
        setup_logging()
        topology = Topology.build(records) if records is not None else load_topology(settings)
        log.info("sa Interactive Aggr => %r", settings.sa_interactive_aggr)
        log.info("sa Batch Aggr       => %r", settings.sa_batch_aggr)
        async with httpx.AsyncClient(
            timeout=settings.request_timeout_s, auth=settings.prom_auth, transport=transport
        ) as client:
            prom = PromClient.from_settings(client, settings)
            app.state.engine = AvailabilityEngine(
                topology, prom, settings.sa_interactive_aggr, settings.sa_batch_aggr
            )
            app.state.metrics_path = settings.metrics_path
            yield

    app = FastAPI(title="SA Exporter", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_api_route(settings.metrics_path, metrics, methods=["GET"], include_in_schema=False)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the exporter on LISTEN_ADDRESS."""
    setup_logging()
    host, port = default_settings.bind
    log.info("Starting SA exporter, listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run()
