from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from sa_exporter.core.errors import ConnectivityError, QueryError
from sa_exporter.models.schemas import Sample, ServiceRecord, ServiceType
from sa_exporter.services.engine import LIVENESS_QUERY
from sa_exporter.services.readiness import not_ready_addresses_query, total_addresses_query
from sa_exporter.services.topology import Topology

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def car_records() -> list[ServiceRecord]:
    return [
        ServiceRecord(product="Car", type=ServiceType.INTERACTIVE, endpoints=("Wheel",)),
        ServiceRecord(product="Car", type=ServiceType.BATCH, endpoints=("Motor", "Axle")),
    ]


@pytest.fixture
def car_topology(car_records) -> Topology:
    return Topology.build(car_records)


def samples(values: dict[str, float]) -> list[Sample]:
    return [Sample(labels={"endpoint": ep}, value=v) for ep, v in values.items()]


class FakeProm:
    """In-memory QueryFn: expression -> samples, or an exception to raise."""

    def __init__(self, answers: dict[str, list[Sample] | Exception] | None = None, up: bool = True):
        self.answers = dict(answers or {})
        self.up = up
        self.calls: list[str] = []

    async def __call__(self, expression: str) -> list[Sample]:
        self.calls.append(expression)
        if expression == LIVENESS_QUERY:
            if not self.up:
                raise ConnectivityError("connection refused")
            return [Sample(labels={"job": "prometheus"}, value=1.0)]
        answer = self.answers.get(expression)
        if answer is None:
            raise QueryError(expression, "unexpected query")
        if isinstance(answer, Exception):
            raise answer
        return answer

    def answer(self, endpoints: str, window: str, total, not_ready) -> "FakeProm":
        self.answers[total_addresses_query(endpoints, window)] = total
        self.answers[not_ready_addresses_query(endpoints, window)] = not_ready
        return self


@pytest.fixture
def fake_prom() -> Callable[..., FakeProm]:
    return FakeProm


@pytest.fixture
def car_prom() -> FakeProm:
    """Upstream state of the reference scenario: Axle has no ready address."""
    return (
        FakeProm()
        .answer("Wheel|", "1m", samples({"Wheel": 2}), samples({"Wheel": 0}))
        .answer("Motor|Axle|", "5m", samples({"Motor": 1, "Axle": 0}), samples({"Motor": 0}))
    )


def owners(topology: Topology) -> dict[str, tuple[str, ...]]:
    """Pattern -> products view of a topology's ownership index."""
    return {entry.pattern: entry.products for entry in topology.ownership}
