import logging

import pytest

from sa_exporter.models.schemas import EndpointReadiness, SampleRow, ServiceType
from sa_exporter.services.aggregator import (
    build_rows,
    extract_values,
    find_products,
    roll_up,
    roll_up_products,
)

INTERACTIVE = ServiceType.INTERACTIVE
BATCH = ServiceType.BATCH


def _row(product, type_, endpoint, value):
    return SampleRow(product=product, type=type_, endpoint=endpoint, value=value)


@pytest.mark.parametrize(
    "values,expected",
    [
        ([1.0, 1.0, 1.0], 1.0),
        ([1.0, 0.0, 1.0], 0.0),
        ([1.0, 0.5, 1.0], 0.0),
        ([], 1.0),
        ([0.0], 0.0),
        ([1.0], 1.0),
        ([0.0, 0.0], 0.0),
        ([2.0], 1.0),
    ],
)
def test_roll_up_zero_always_wins(values, expected):
    assert roll_up(values, "test") == expected


def test_roll_up_logs_down(caplog):
    with caplog.at_level(logging.INFO, logger="sa.aggregator"):
        roll_up([1.0, 0.0], "Car batch")
    assert "SA DOWN for Car batch" in caplog.text


def test_build_rows_one_row_per_owner(car_topology):
    readiness = [
        EndpointReadiness(endpoint="Motor", available_count=1.0),
        EndpointReadiness(endpoint="Axle", available_count=0.0),
    ]

    rows = build_rows(BATCH, readiness, car_topology.ownership)

    assert rows == [_row("Car", BATCH, "Motor", 1.0), _row("Car", BATCH, "Axle", 0.0)]


def test_build_rows_values_are_binary(car_topology):
    readiness = [EndpointReadiness(endpoint="Wheel", available_count=c) for c in (3.0, 0.25, -1.0, 0.0)]

    rows = build_rows(INTERACTIVE, readiness, car_topology.ownership)

    assert [row.value for row in rows] == [1.0, 1.0, 1.0, 0.0]


def test_build_rows_drops_unowned_endpoint(car_topology, caplog):
    readiness = [
        EndpointReadiness(endpoint="svc-foo", available_count=4.0),
        EndpointReadiness(endpoint="Wheel", available_count=4.0),
    ]

    with caplog.at_level(logging.ERROR, logger="sa.aggregator"):
        rows = build_rows(INTERACTIVE, readiness, car_topology.ownership)

    assert [row.endpoint for row in rows] == ["Wheel"]
    assert "svc-foo" in caplog.text


def test_extract_values():
    rows = [
        _row("Product1", INTERACTIVE, "endpoint1", 1.0),
        _row("Product1", BATCH, "endpoint2", 0.0),
        _row("Product2", INTERACTIVE, "endpoint3", 0.0),
    ]

    assert extract_values("Product1", rows) == [1.0, 0.0]
    assert extract_values("Product2", rows) == [0.0]
    assert extract_values("NonExistent", rows) == []


def test_find_products_unique_in_first_seen_order():
    rows = [
        _row("Product2", INTERACTIVE, "endpoint3", 0.0),
        _row("Product1", INTERACTIVE, "endpoint1", 1.0),
        _row("Product2", BATCH, "endpoint2", 1.0),
    ]

    assert find_products(rows) == ["Product2", "Product1"]
    assert find_products([]) == []


def test_roll_up_products_car_scenario():
    interactive = [_row("Car", INTERACTIVE, "Wheel", 1.0)]
    batch = [_row("Car", BATCH, "Motor", 1.0), _row("Car", BATCH, "Axle", 0.0)]

    types, overall = roll_up_products(interactive, batch)

    assert {(t.product, t.type, t.value) for t in types} == {
        ("Car", INTERACTIVE, 1.0),
        ("Car", BATCH, 0.0),
    }
    assert [(o.product, o.value) for o in overall] == [("Car", 0.0)]


def test_roll_up_products_only_batch_products_are_enumerated(caplog):
    interactive = [_row("Car", INTERACTIVE, "Wheel", 1.0), _row("Bike", INTERACTIVE, "Pedal", 0.0)]
    batch = [_row("Car", BATCH, "Motor", 1.0)]

    with caplog.at_level(logging.WARNING, logger="sa.aggregator"):
        types, overall = roll_up_products(interactive, batch)

    assert {t.product for t in types} == {"Car"}
    assert [(o.product, o.value) for o in overall] == [("Car", 1.0)]
    assert "Bike" in caplog.text


def test_roll_up_products_missing_interactive_is_vacuously_available():
    types, overall = roll_up_products([], [_row("Car", BATCH, "Motor", 1.0)])

    assert [(t.type, t.value) for t in types] == [(INTERACTIVE, 1.0), (BATCH, 1.0)]
    assert overall[0].value == 1.0
