"""Result values returned by a single ingestion attempt."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union

from models.records import Reading


class OutcomeStatus(str, Enum):
    """Outcome kinds exposed to callers of the ingestion pipeline."""

    accepted = "accepted"
    rejected_invalid = "rejected_invalid"
    rejected_duplicate = "rejected_duplicate"
    rejected_unknown_node = "rejected_unknown_node"
    failed = "failed"


@dataclass(frozen=True)
class Accepted:
    reading: Reading
    status: ClassVar[OutcomeStatus] = OutcomeStatus.accepted

    @property
    def message(self) -> str:
        reading = self.reading
        return (
            f"Inserted: {reading.node_id} @ {reading.timestamp.isoformat(sep=' ')} "
            f"T={reading.temperature:g} H={reading.humidity:g}"
        )


@dataclass(frozen=True)
class RejectedInvalid:
    reason: str
    field: Optional[str] = None
    value: Optional[str] = None
    status: ClassVar[OutcomeStatus] = OutcomeStatus.rejected_invalid

    @property
    def message(self) -> str:
        return f"Insert failed: {self.reason}"


@dataclass(frozen=True)
class RejectedDuplicate:
    node_id: str
    timestamp: Optional[datetime]
    status: ClassVar[OutcomeStatus] = OutcomeStatus.rejected_duplicate

    @property
    def message(self) -> str:
        when = self.timestamp.isoformat(sep=" ") if self.timestamp else "server time"
        return f"Duplicate: ({self.node_id}, {when}) already exists."


@dataclass(frozen=True)
class RejectedUnknownNode:
    node_id: str
    status: ClassVar[OutcomeStatus] = OutcomeStatus.rejected_unknown_node

    @property
    def message(self) -> str:
        return f"Insert failed: node {self.node_id!r} not registered."


@dataclass(frozen=True)
class StorageFailed:
    reason: str
    status: ClassVar[OutcomeStatus] = OutcomeStatus.failed

    @property
    def message(self) -> str:
        return f"DB error: {self.reason}"


IngestionOutcome = Union[
    Accepted,
    RejectedInvalid,
    RejectedDuplicate,
    RejectedUnknownNode,
    StorageFailed,
]
