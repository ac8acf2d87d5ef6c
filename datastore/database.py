"""Database handle and table definitions for the telemetry store."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    MetaData,
    String,
    Table,
    create_engine,
    event,
    func,
    text,
)
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from settings import get_settings

logger = logging.getLogger(__name__)

metadata = MetaData()

sensor_register = Table(
    "sensor_register",
    metadata,
    Column("node_name", String(64), primary_key=True),
    Column("manufacturer", String(128), nullable=False),
    Column("longitude", Float, nullable=True),
    Column("latitude", Float, nullable=True),
)

# SQLite compares key columns as text, so explicit values must use the same
# whole-second layout that CURRENT_TIMESTAMP writes.
ReadingTimestamp = DateTime().with_variant(
    sqlite.DATETIME(truncate_microseconds=True), "sqlite"
)

# The composite primary key is what makes (node, timestamp) unique.
sensor_data = Table(
    "sensor_data",
    metadata,
    Column(
        "node_name",
        String(64),
        ForeignKey("sensor_register.node_name"),
        primary_key=True,
    ),
    Column(
        "time_received",
        ReadingTimestamp,
        primary_key=True,
        server_default=func.current_timestamp(),
    ),
    Column("temperature", Float, nullable=False),
    Column("humidity", Float, nullable=False, server_default=text("0")),
)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def create_database_engine(url: str, timeout: float = 5.0) -> Engine:
    """Create an engine for ``url`` with lock and pool timeouts set to ``timeout``."""
    parsed = make_url(url)
    options: Dict[str, Any] = {}
    is_sqlite = parsed.get_backend_name() == "sqlite"

    if is_sqlite:
        options["connect_args"] = {"check_same_thread": False, "timeout": timeout}
        if parsed.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        else:
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    else:
        options["pool_pre_ping"] = True
        options["pool_timeout"] = timeout

    engine = create_engine(parsed, **options)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.info(
        "Database engine created backend=%s database=%s",
        parsed.get_backend_name(),
        parsed.database,
    )
    return engine


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)


@lru_cache
def build_default_engine(url: Optional[str] = None) -> Engine:
    settings = get_settings()
    database_url = settings.database_url if url is None else url
    engine = create_database_engine(database_url, timeout=settings.database_timeout)
    create_schema(engine)
    return engine
