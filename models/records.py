"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class SensorNode:
    """A registered sensor node and its static metadata."""

    node_id: str
    manufacturer: str
    longitude: Optional[float] = None
    latitude: Optional[float] = None


@dataclass(frozen=True, slots=True)
class CandidateReading:
    """Raw, untyped reading fields extracted from a submission."""

    node: str
    temperature: str
    humidity: Optional[str] = None
    timestamp: Optional[str] = None
    encoding: str = "plain"


@dataclass(frozen=True, slots=True)
class NewReading:
    """A validated reading that has not been stored yet.

    ``timestamp`` is kept as the submitted string; ``None`` means the store
    assigns its own current time when the row is written.
    """

    node_id: str
    temperature: float
    humidity: float = 0.0
    timestamp: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Reading:
    """A reading persisted in the store."""

    node_id: str
    timestamp: datetime
    temperature: float
    humidity: float


@dataclass(frozen=True, slots=True)
class NodeAggregate:
    """Average temperature and humidity over every reading of one node."""

    node_id: str
    count: int = 0
    avg_temperature: Optional[float] = None
    avg_humidity: Optional[float] = None


@dataclass(slots=True)
class ReadingSeries:
    """Parallel per-reading sequences used by charting consumers."""

    node_id: str
    timestamps: List[datetime] = field(default_factory=list)
    temperatures: List[float] = field(default_factory=list)
    humidities: List[float] = field(default_factory=list)
