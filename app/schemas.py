"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from models.records import NodeAggregate, Reading, ReadingSeries, SensorNode
from services.outcomes import (
    Accepted,
    IngestionOutcome,
    OutcomeStatus,
    RejectedDuplicate,
    RejectedInvalid,
    RejectedUnknownNode,
)


class SensorNodeOut(BaseModel):
    """Registry entry for one sensor node."""

    node_name: str
    manufacturer: str
    longitude: Optional[float] = None
    latitude: Optional[float] = None

    @classmethod
    def from_node(cls, node: SensorNode) -> "SensorNodeOut":
        return cls(
            node_name=node.node_id,
            manufacturer=node.manufacturer,
            longitude=node.longitude,
            latitude=node.latitude,
        )


class ReadingOut(BaseModel):
    """A stored reading."""

    node_name: str
    time_received: datetime
    temperature: float
    humidity: float

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(
            node_name=reading.node_id,
            time_received=reading.timestamp,
            temperature=reading.temperature,
            humidity=reading.humidity,
        )


class NodeAggregateOut(BaseModel):
    """Averages over all readings of a node; averages are null with no rows."""

    node_name: str
    count: int = Field(..., ge=0)
    avg_temperature: Optional[float] = None
    avg_humidity: Optional[float] = None

    @classmethod
    def from_aggregate(cls, aggregate: NodeAggregate) -> "NodeAggregateOut":
        return cls(
            node_name=aggregate.node_id,
            count=aggregate.count,
            avg_temperature=aggregate.avg_temperature,
            avg_humidity=aggregate.avg_humidity,
        )


class ReadingSeriesOut(BaseModel):
    """Parallel sequences for charting one node over time."""

    node_name: str
    labels: List[datetime] = Field(default_factory=list)
    temperatures: List[float] = Field(default_factory=list)
    humidities: List[float] = Field(default_factory=list)

    @classmethod
    def from_series(cls, series: ReadingSeries) -> "ReadingSeriesOut":
        return cls(
            node_name=series.node_id,
            labels=list(series.timestamps),
            temperatures=list(series.temperatures),
            humidities=list(series.humidities),
        )


class IngestionResponse(BaseModel):
    """Result of a single submission, whatever its outcome."""

    status: OutcomeStatus
    message: str
    node_name: Optional[str] = None
    time_received: Optional[datetime] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    field: Optional[str] = Field(
        default=None, description="Offending field for rejected submissions."
    )
    value: Optional[str] = Field(
        default=None, description="Offending raw value for rejected submissions."
    )

    @classmethod
    def from_outcome(cls, outcome: IngestionOutcome) -> "IngestionResponse":
        payload = cls(status=outcome.status, message=outcome.message)
        if isinstance(outcome, Accepted):
            payload.node_name = outcome.reading.node_id
            payload.time_received = outcome.reading.timestamp
            payload.temperature = outcome.reading.temperature
            payload.humidity = outcome.reading.humidity
        elif isinstance(outcome, RejectedDuplicate):
            payload.node_name = outcome.node_id
            payload.time_received = outcome.timestamp
        elif isinstance(outcome, RejectedUnknownNode):
            payload.node_name = outcome.node_id
            payload.field = "node"
            payload.value = outcome.node_id
        elif isinstance(outcome, RejectedInvalid):
            payload.field = outcome.field
            payload.value = outcome.value
        return payload
