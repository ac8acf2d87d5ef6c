from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from datastore.database import sensor_register
from models.records import SensorNode
from services.errors import StorageError

logger = logging.getLogger(__name__)


def _row_to_node(row: Row) -> SensorNode:
    return SensorNode(
        node_id=row.node_name,
        manufacturer=row.manufacturer,
        longitude=row.longitude,
        latitude=row.latitude,
    )


class NodeRegistry:
    """Authoritative set of known sensor nodes.

    Every lookup goes to the database so that registrations made by other
    processes are visible on the next call.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def exists(self, node_id: str) -> bool:
        stmt = (
            select(sensor_register.c.node_name)
            .where(sensor_register.c.node_name == node_id)
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).first() is not None
        except SQLAlchemyError as exc:
            raise StorageError(f"Node lookup failed: {exc}") from exc

    def get(self, node_id: str) -> Optional[SensorNode]:
        stmt = select(sensor_register).where(sensor_register.c.node_name == node_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as exc:
            raise StorageError(f"Node lookup failed: {exc}") from exc
        return _row_to_node(row) if row is not None else None

    def list_nodes(self) -> List[SensorNode]:
        stmt = select(sensor_register).order_by(sensor_register.c.node_name)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Listing nodes failed: {exc}") from exc
        return [_row_to_node(row) for row in rows]

    def register(self, node: SensorNode) -> None:
        """Add a node; raises ``ValueError`` if the identifier is taken."""
        stmt = sensor_register.insert().values(
            node_name=node.node_id,
            manufacturer=node.manufacturer,
            longitude=node.longitude,
            latitude=node.latitude,
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except IntegrityError as exc:
            raise ValueError(f"Node {node.node_id!r} is already registered.") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Registering node failed: {exc}") from exc
        logger.info("Registered sensor node", extra={"node_id": node.node_id})
