from __future__ import annotations

from typing import Iterator

import pytest
from sqlalchemy.engine import Engine

from datastore.database import create_database_engine, create_schema
from datastore.node_registry import NodeRegistry
from datastore.reading_store import ReadingStore
from models.records import SensorNode


@pytest.fixture()
def engine(tmp_path) -> Iterator[Engine]:
    db_engine = create_database_engine(f"sqlite:///{tmp_path / 'telemetry.db'}")
    create_schema(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture()
def registry(engine: Engine) -> NodeRegistry:
    node_registry = NodeRegistry(engine)
    node_registry.register(SensorNode("node_1", "Adafruit", longitude=-122.67, latitude=38.34))
    node_registry.register(SensorNode("node_2", "Adafruit"))
    node_registry.register(SensorNode("node_3", "SparkFun", longitude=-122.68, latitude=38.35))
    return node_registry


@pytest.fixture()
def store(engine: Engine) -> ReadingStore:
    return ReadingStore(engine)
