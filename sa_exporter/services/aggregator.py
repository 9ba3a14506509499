"""Roll endpoint availability up to types and products ("zero always wins")."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from sa_exporter.core.errors import ResolutionError
from sa_exporter.metrics.prometheus import DIAGNOSTICS
from sa_exporter.models.schemas import (
    EndpointReadiness,
    OverallRollup,
    SampleRow,
    ServiceType,
    TypeRollup,
)
from sa_exporter.services.readiness import ready_value
from sa_exporter.services.topology import OwnershipEntry, resolve_products

log = logging.getLogger("sa.aggregator")


def roll_up(values: Iterable[float], kind: str = "") -> float:
    """0.0 if any value is below 1.0, else 1.0. No values at all is 1.0."""
    seen = False
    for value in values:
        seen = True
        if value < 1.0:
            log.info("SA DOWN for %s", kind)
            return 0.0
    if not seen:
        log.debug("no values to roll up for %s, reporting available", kind)
    return 1.0


def _owners(endpoint: str, ownership: Sequence[OwnershipEntry]) -> list[str]:
    products = resolve_products(endpoint, ownership)
    if not products:
        raise ResolutionError(endpoint)
    return products


def build_rows(
    type_: ServiceType, readiness: Iterable[EndpointReadiness], ownership: Sequence[OwnershipEntry]
) -> list[SampleRow]:
    """One row per (endpoint, owning product); unowned endpoints are dropped."""
    rows: list[SampleRow] = []
    for item in readiness:
        value = ready_value(item.available_count)
        if value < 1.0:
            log.info("SA DOWN for endpoint %s, #address_available: %s", item.endpoint, item.available_count)
        try:
            products = _owners(item.endpoint, ownership)
        except ResolutionError as e:
            DIAGNOSTICS.labels(kind="resolution").inc()
            log.error("%s", e)
            continue
        rows.extend(
            SampleRow(product=product, type=type_, endpoint=item.endpoint, value=value)
            for product in products
        )
    return rows


def extract_values(product: str, rows: Iterable[SampleRow]) -> list[float]:
    return [row.value for row in rows if row.product == product]


def find_products(rows: Iterable[SampleRow]) -> list[str]:
    """Unique products, first seen first."""
    return list(dict.fromkeys(row.product for row in rows))


def roll_up_products(
    interactive: Sequence[SampleRow], batch: Sequence[SampleRow]
) -> tuple[list[TypeRollup], list[OverallRollup]]:
    """Type and overall availability of every product seen in ``batch``.

    Products only present in ``interactive`` get no rollup; they are reported
    as a diagnostic.
    """
    products = find_products(batch)
    for product in find_products(interactive):
        if product not in products:
            DIAGNOSTICS.labels(kind="interactive_only_product").inc()
            log.warning("Product %s has interactive endpoints only, no SA aggregation computed", product)

    types: list[TypeRollup] = []
    overall: list[OverallRollup] = []
    for product in products:
        log.info("Will compute SA aggr metrics for product: %s", product)
        sa_interactive = roll_up(extract_values(product, interactive), f"{product} interactive")
        sa_batch = roll_up(extract_values(product, batch), f"{product} batch")
        types.append(TypeRollup(product=product, type=ServiceType.INTERACTIVE, value=sa_interactive))
        types.append(TypeRollup(product=product, type=ServiceType.BATCH, value=sa_batch))
        overall.append(
            OverallRollup(product=product, value=roll_up([sa_interactive, sa_batch], f"{product} overall"))
        )
    return types, overall
