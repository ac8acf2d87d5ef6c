"""Domain checks applied to candidate readings before storage."""

from __future__ import annotations

import math
from typing import Optional, Protocol

from models.records import CandidateReading, NewReading
from services.errors import RangeError, UnknownNodeError, ValidationError

TEMPERATURE_RANGE = (-40.0, 125.0)
HUMIDITY_RANGE = (0.0, 100.0)
DEFAULT_HUMIDITY = 0.0


class NodeLookup(Protocol):
    def exists(self, node_id: str) -> bool: ...


def _parse_bounded(field: str, raw: str, bounds: tuple[float, float]) -> float:
    lower, upper = bounds
    # float() also takes digit separators like "1_0".
    if isinstance(raw, str) and "_" in raw:
        raise RangeError(field, raw, lower, upper)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise RangeError(field, raw, lower, upper) from exc
    if not math.isfinite(value) or value < lower or value > upper:
        raise RangeError(field, raw, lower, upper)
    return value


class ReadingValidator:
    """Checks node identity and value ranges, in that order."""

    def __init__(self, registry: NodeLookup) -> None:
        self.registry = registry

    def validate(self, candidate: CandidateReading) -> NewReading:
        node_id = candidate.node.strip()
        if not node_id:
            raise ValidationError("Node identifier is empty.", field="node", value=candidate.node)

        if not self.registry.exists(node_id):
            raise UnknownNodeError(node_id)

        temperature = _parse_bounded("temperature", candidate.temperature, TEMPERATURE_RANGE)
        humidity = self._humidity(candidate.humidity)

        return NewReading(
            node_id=node_id,
            temperature=temperature,
            humidity=humidity,
            timestamp=candidate.timestamp,
        )

    @staticmethod
    def _humidity(raw: Optional[str]) -> float:
        if raw is None:
            return DEFAULT_HUMIDITY
        return _parse_bounded("humidity", raw, HUMIDITY_RANGE)
