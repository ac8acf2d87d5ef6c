"""Append-only storage of accepted readings."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import func, select
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql import Select

from datastore.database import sensor_data
from models.records import NewReading, NodeAggregate, Reading
from services.errors import DuplicateError, StorageError, ValidationError

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION_SQLSTATE = "23505"
_MYSQL_DUPLICATE_ENTRY = 1062

_READING_COLUMNS = (
    sensor_data.c.node_name,
    sensor_data.c.time_received,
    sensor_data.c.temperature,
    sensor_data.c.humidity,
)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 date-time into the naive UTC form the table stores.

    Fractional seconds are dropped; keys have whole-second resolution.
    """
    candidate = value.strip()
    if not candidate:
        raise ValidationError("Timestamp is empty.", field="timestamp", value=value)

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except (ValueError, OverflowError) as exc:
        raise ValidationError(
            f"Invalid timestamp format: {value!r}.", field="timestamp", value=value
        ) from exc

    return parsed.replace(microsecond=0)


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate:
        return sqlstate == _UNIQUE_VIOLATION_SQLSTATE
    args: Any = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_DUPLICATE_ENTRY:
        return True
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate" in message


def _row_to_reading(row: Row) -> Reading:
    return Reading(
        node_id=row.node_name,
        timestamp=row.time_received,
        temperature=float(row.temperature),
        humidity=float(row.humidity),
    )


class ReadingStore:
    """Stores readings keyed by (node, timestamp) and serves ordered reads."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def insert(self, reading: NewReading) -> Reading:
        """Write one reading atomically and return the stored row.

        Raises ``DuplicateError`` when the (node, timestamp) key exists and
        ``StorageError`` for any other database failure.
        """
        values: dict[str, Any] = {
            "node_name": reading.node_id,
            "temperature": reading.temperature,
            "humidity": reading.humidity,
        }
        timestamp = None
        if reading.timestamp is not None:
            timestamp = parse_timestamp(reading.timestamp)
            values["time_received"] = timestamp

        stmt = sensor_data.insert().values(**values).returning(*_READING_COLUMNS)
        try:
            with self.engine.begin() as conn:
                row = conn.execute(stmt).one()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateError(reading.node_id, timestamp) from exc
            raise StorageError(f"Insert rejected by database: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Insert failed: {exc}") from exc

        stored = _row_to_reading(row)
        logger.debug(
            "Stored reading",
            extra={"node_id": stored.node_id, "timestamp": stored.timestamp},
        )
        return stored

    def query_by_node(self, node_id: str) -> List[Reading]:
        stmt = (
            select(*_READING_COLUMNS)
            .where(sensor_data.c.node_name == node_id)
            .order_by(sensor_data.c.time_received.asc())
        )
        return self._fetch_readings(stmt)

    def query_all(self) -> List[Reading]:
        stmt = select(*_READING_COLUMNS).order_by(
            sensor_data.c.node_name.asc(),
            sensor_data.c.time_received.asc(),
        )
        return self._fetch_readings(stmt)

    def aggregate(self, node_id: str) -> NodeAggregate:
        stmt = select(
            func.avg(sensor_data.c.temperature).label("avg_temperature"),
            func.avg(sensor_data.c.humidity).label("avg_humidity"),
            func.count().label("reading_count"),
        ).where(sensor_data.c.node_name == node_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).one()
        except SQLAlchemyError as exc:
            raise StorageError(f"Aggregate query failed: {exc}") from exc

        count = int(row.reading_count or 0)
        if not count:
            return NodeAggregate(node_id=node_id)
        return NodeAggregate(
            node_id=node_id,
            count=count,
            avg_temperature=float(row.avg_temperature),
            avg_humidity=float(row.avg_humidity),
        )

    def _fetch_readings(self, stmt: Select) -> List[Reading]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Reading query failed: {exc}") from exc
        return [_row_to_reading(row) for row in rows]
