"""Exception types raised by the SA exporter."""
from __future__ import annotations


class SAExporterError(Exception):
    """Base class for exporter errors."""


class ConnectivityError(SAExporterError):
    """The upstream query backend could not be reached."""


class QueryError(SAExporterError):
    """A query failed or returned a payload we cannot use."""

    def __init__(self, query: str, reason: str):
        super().__init__(f"query {query!r} failed: {reason}")
        self.query = query
        self.reason = reason


class ConsistencyError(SAExporterError):
    """A not-ready row was reported for an endpoint with no total row."""

    def __init__(self, endpoint: str):
        super().__init__(f"endpoint {endpoint!r} has not-ready addresses but no total, synch issue")
        self.endpoint = endpoint


class ResolutionError(SAExporterError):
    """No product owns the endpoint."""

    def __init__(self, endpoint: str):
        super().__init__(f"could not find any product matching endpoint {endpoint!r}")
        self.endpoint = endpoint


class TopologyError(SAExporterError):
    """The service map could not be loaded."""
