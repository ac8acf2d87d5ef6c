"""Read-only projections over the node registry and reading store."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from datastore.database import build_default_engine
from datastore.node_registry import NodeRegistry
from datastore.reading_store import ReadingStore
from models.records import NodeAggregate, Reading, ReadingSeries, SensorNode


class QueryService:
    def __init__(self, registry: NodeRegistry, store: ReadingStore) -> None:
        self.registry = registry
        self.store = store

    def list_nodes(self) -> List[SensorNode]:
        return self.registry.list_nodes()

    def list_readings(self, node_id: Optional[str] = None) -> List[Reading]:
        """All readings ordered by node then time, or one node's in time order."""
        if node_id is None:
            return self.store.query_all()
        return self.store.query_by_node(node_id)

    def node_aggregate(self, node_id: str) -> NodeAggregate:
        return self.store.aggregate(node_id)

    def reading_series(self, node_id: str) -> ReadingSeries:
        series = ReadingSeries(node_id=node_id)
        for reading in self.store.query_by_node(node_id):
            series.timestamps.append(reading.timestamp)
            series.temperatures.append(reading.temperature)
            series.humidities.append(reading.humidity)
        return series


@lru_cache
def build_default_queries() -> QueryService:
    engine = build_default_engine()
    return QueryService(registry=NodeRegistry(engine), store=ReadingStore(engine))
