"""HTTP routes of the SA exporter.

``/ready`` and ``/health`` are static checks; the metrics handler runs one
aggregation cycle per call and is mounted by ``main`` on the configured path.
"""
from __future__ import annotations

from logging import getLogger

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sa_exporter.metrics.prometheus import render
from sa_exporter.services.engine import AvailabilityEngine

log = getLogger("sa.api")
router = APIRouter()

READY_MESSAGE = "SA Exporter is ready to rock"


def _get_engine(request: Request) -> AvailabilityEngine:
    """Return the engine placed on ``app.state`` by the application lifespan."""
    engine: AvailabilityEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="exporter not initialized")
    return engine


async def metrics(request: Request) -> Response:
    """Prometheus exposition: process metrics followed by this scrape's SA gauges."""
    engine = _get_engine(request)
    result = await engine.run_cycle()
    data = generate_latest() + render(result)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@router.get("/ready", response_class=HTMLResponse)
async def ready(request: Request):
    """Readiness page linking to the metrics endpoint."""
    metrics_path = getattr(request.app.state, "metrics_path", "/metrics")
    return (
        "<html><head><title>SA Exporter</title></head><body>"
        f"<h1>{READY_MESSAGE}</h1>"
        f"<p><a href='{metrics_path}'>Metrics</a></p>"
        "</body></html>"
    )


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "OK"}
