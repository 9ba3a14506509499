"""Service topology: which endpoints make up which product.

The topology is loaded once from a JSON service map and indexed two ways:
by service type (to build the query matcher) and by endpoint pattern (to
attribute query results back to products). The resulting ``Topology`` is
immutable and shared by every scrape.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from pydantic import TypeAdapter, ValidationError

from sa_exporter.core.errors import TopologyError
from sa_exporter.models.schemas import ServiceRecord, ServiceType

log = logging.getLogger("sa.topology")

SEPARATOR = "|"

_records_adapter = TypeAdapter(list[ServiceRecord])


@dataclass(frozen=True)
class OwnershipEntry:
    """An endpoint pattern and the products that declared it, in declaration order."""
    pattern: str
    regex: re.Pattern[str]
    products: tuple[str, ...]


@dataclass(frozen=True)
class Topology:
    types: Mapping[ServiceType, tuple[str, ...]]
    ownership: tuple[OwnershipEntry, ...]

    @classmethod
    def build(cls, records: Iterable[ServiceRecord]) -> "Topology":
        """Index ``records`` by type and by endpoint.

        Endpoints are appended in the order given and are not deduplicated;
        an endpoint declared by several products maps to all of them.
        """
        by_type: dict[ServiceType, list[str]] = {}
        by_endpoint: dict[str, list[str]] = {}
        for record in records:
            by_type.setdefault(record.type, []).extend(record.endpoints)
            for endpoint in record.endpoints:
                by_endpoint.setdefault(endpoint, []).append(record.product)

        ownership = tuple(
            OwnershipEntry(pattern, _compile(pattern), tuple(products))
            for pattern, products in by_endpoint.items()
        )
        log.info("Topology built: %d types, %d endpoint patterns", len(by_type), len(ownership))
        return cls(
            types=MappingProxyType({t: tuple(eps) for t, eps in by_type.items()}),
            ownership=ownership,
        )

    def endpoints(self, type_: ServiceType | str) -> tuple[str, ...]:
        try:
            return self.types.get(ServiceType(type_), ())
        except ValueError:
            return ()

    def endpoint_set_expression(self, type_: ServiceType | str) -> str:
        """Endpoints of ``type_`` each followed by ``|``, for a regex label matcher.

        Unknown or empty types give an empty string.
        """
        return "".join(endpoint + SEPARATOR for endpoint in self.endpoints(type_))


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        log.warning("Endpoint pattern %r is not a valid regex (%s), matching it literally", pattern, e)
        return re.compile(re.escape(pattern))


def resolve_products(endpoint: str, ownership: Sequence[OwnershipEntry]) -> list[str]:
    """Return the products of the first pattern found in ``endpoint``.

    Matching is a regex search, so a pattern only anchors if it says so.
    Entries are scanned in declaration order. Returns an empty list when
    nothing matches; the caller decides how to report it.
    """
    for entry in ownership:
        if entry.regex.search(endpoint):
            log.debug("%s is matching with %s", endpoint, entry.pattern)
            return list(entry.products)
    return []


def find_service_map(external_dir: str | Path, default_path: str | Path) -> Path:
    """Pick the service map to load.

    The first ``*.json`` file (by name) in ``external_dir`` overrides
    ``default_path``. A missing or unreadable directory falls back to the default.
    """
    directory = Path(external_dir)
    try:
        candidates = sorted(p for p in directory.iterdir() if p.is_file() and p.name.endswith("json"))
    except OSError as e:
        log.info("No external service map in %s (%s)", directory, e)
        return Path(default_path)

    if candidates:
        log.info("The file %s was found and will override the default service map.", candidates[0])
        return candidates[0]
    return Path(default_path)


def load_services(path: str | Path) -> list[ServiceRecord]:
    """Read and validate a JSON service map."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TopologyError(f"cannot read service map {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise TopologyError(f"service map {path} is not valid JSON: {e}") from e

    try:
        records = _records_adapter.validate_python(raw)
    except ValidationError as e:
        raise TopologyError(f"service map {path} is malformed: {e}") from e

    log.info("Successfully opened %s", path)
    if not records:
        log.error("%s is empty", path)
    for record in records:
        log.debug("Product: %s, type: %s, endpoints: %s", record.product, record.type.value, record.endpoints)
    return records
