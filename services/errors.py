"""Error taxonomy for the ingestion pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class IngestionError(Exception):
    """Base class for every failure raised while ingesting a reading."""


class DecodeError(IngestionError):
    """The submission could not be decoded into a candidate reading."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ValidationError(IngestionError):
    """A decoded field failed a completeness or domain check."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class UnknownNodeError(ValidationError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id!r} not registered.", field="node", value=node_id)
        self.node_id = node_id


class RangeError(ValidationError):
    def __init__(self, field: str, value: str, lower: float, upper: float) -> None:
        super().__init__(
            f"{field.capitalize()} out of range [{lower:g}, {upper:g}]: {value!r}.",
            field=field,
            value=value,
        )
        self.lower = lower
        self.upper = upper


class DuplicateError(IngestionError):
    """A reading for the same node and timestamp is already stored.

    ``timestamp`` is ``None`` when the conflicting time was assigned by the
    database itself.
    """

    def __init__(self, node_id: str, timestamp: Optional[datetime]) -> None:
        when = timestamp.isoformat(sep=" ") if timestamp is not None else "server time"
        super().__init__(f"Duplicate: ({node_id}, {when}) already exists.")
        self.node_id = node_id
        self.timestamp = timestamp


class StorageError(IngestionError):
    """The underlying database failed or timed out."""
