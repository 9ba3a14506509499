"""Configuration for the SA exporter.

Provides strongly-typed settings using Pydantic and a loader from environment
variables (optionally seeded from a ``.env`` file) with defaults suitable for
local development.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

log = logging.getLogger("sa.config")


class Settings(BaseModel):
    """Pydantic settings for the SA exporter."""

    prom_endpoint: str = "localhost:9090"
    prom_user: str | None = None
    prom_password: str | None = None
    # Aggregation windows, e.g. "1m" / "5m". Empty means instant vector.
    sa_interactive_aggr: str = ""
    sa_batch_aggr: str = ""
    listen_address: str = ":9800"
    metrics_path: str = "/metrics"
    services_file: str = "resources/services.json"
    mapped_services_dir: str = "mapped-services"
    request_timeout_s: float = 5.0

    @field_validator("metrics_path")
    @classmethod
    def _absolute_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("metrics_path must start with '/'")
        return v

    @field_validator("listen_address")
    @classmethod
    def _host_port(cls, v: str) -> str:
        _, sep, port = v.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError("listen_address must be [host]:port")
        return v

    @property
    def prom_url(self) -> str:
        """Base URL of the Prometheus API, with basic auth when configured."""
        endpoint = self.prom_endpoint
        if "://" not in endpoint:
            endpoint = f"http://{endpoint}"
        return endpoint.rstrip("/")

    @property
    def prom_auth(self) -> tuple[str, str] | None:
        if self.prom_user and self.prom_password:
            return self.prom_user, self.prom_password
        return None

    @property
    def bind(self) -> tuple[str, int]:
        """Split ``listen_address`` into (host, port); an empty host binds all."""
        host, _, port = self.listen_address.rpartition(":")
        return host or "0.0.0.0", int(port)


def load_settings(env_file: str | None = ".env") -> Settings:
    """Load settings from environment variables and return a Settings object."""
    if env_file and not load_dotenv(env_file):
        log.info("%s file absent, assume env variables are set.", env_file)

    user = os.getenv("PROMETHEUS_AUTH_USER") or None
    pwd = os.getenv("PROMETHEUS_AUTH_PWD") or None
    if not (user and pwd):
        log.info("PROMETHEUS_AUTH_USER and/or PROMETHEUS_AUTH_PWD not set, will not use basic auth.")

    try:
        return Settings(
            prom_endpoint=os.getenv("PROM_ENDPOINT", "localhost:9090"),
            prom_user=user,
            prom_password=pwd,
            sa_interactive_aggr=os.getenv("SA_INTERACTIVE_AGGR", ""),
            sa_batch_aggr=os.getenv("SA_BATCH_AGGR", ""),
            listen_address=os.getenv("LISTEN_ADDRESS", ":9800"),
            metrics_path=os.getenv("METRICS_PATH", "/metrics"),
            services_file=os.getenv("SERVICES_FILE", "resources/services.json"),
            mapped_services_dir=os.getenv("MAPPED_SERVICES_DIR", "mapped-services"),
            request_timeout_s=float(os.getenv("REQUEST_TIMEOUT_S", "5.0")),
        )
    except (ValidationError, ValueError) as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e


settings = load_settings()
