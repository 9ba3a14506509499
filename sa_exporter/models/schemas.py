"""Pydantic models used by the SA exporter."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ServiceType(str, Enum):
    """Traffic pattern of an endpoint; each type has its own aggregation window."""
    INTERACTIVE = "interactive"
    BATCH = "batch"


class ServiceRecord(BaseModel):
    """One entry of the service map: a product's endpoints of a given type."""
    model_config = ConfigDict(frozen=True)

    product: str
    type: ServiceType
    endpoints: tuple[str, ...] = ()


class Sample(BaseModel):
    """A single element of an instant-vector query result."""
    labels: dict[str, str] = Field(default_factory=dict)
    value: float


class EndpointReadiness(BaseModel):
    """Number of ready addresses computed for one endpoint."""
    endpoint: str
    available_count: float


class SampleRow(BaseModel):
    """Binary availability of one endpoint, attributed to one product."""
    product: str
    type: ServiceType
    endpoint: str
    value: float  # 0.0 or 1.0


class TypeRollup(BaseModel):
    product: str
    type: ServiceType
    value: float


class OverallRollup(BaseModel):
    product: str
    value: float


class CycleResult(BaseModel):
    """Everything one aggregation cycle produced, ready to be exposed."""
    dependency: str = "prometheus"
    dependency_up: bool
    rows: list[SampleRow] = Field(default_factory=list)
    type_rollups: list[TypeRollup] = Field(default_factory=list)
    overall: list[OverallRollup] = Field(default_factory=list)
