from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.api import get_ingestion, get_queries
from app.main import create_app
from datastore.database import build_default_engine
from datastore.node_registry import NodeRegistry
from models.records import SensorNode
from services.decoder import encode_payload
from services.errors import StorageError
from services.ingestion import build_default_ingestion
from services.outcomes import StorageFailed
from services.queries import build_default_queries
from settings import get_settings


def _clear_caches() -> None:
    for cache in (get_settings, build_default_engine, build_default_ingestion, build_default_queries):
        cache.cache_clear()


@pytest.fixture
def api_client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'api.db'}")
    _clear_caches()

    app = create_app()
    with TestClient(app) as client:
        registry = NodeRegistry(build_default_engine())
        registry.register(SensorNode("node_1", "Adafruit", longitude=-122.67, latitude=38.34))
        registry.register(SensorNode("node_3", "SparkFun"))
        yield client

    _clear_caches()


def test_lifespan_disposes_engine_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'lifespan.db'}")
    _clear_caches()
    app = create_app()

    with TestClient(app):
        engine_during = build_default_engine()

    engine_after = build_default_engine()
    try:
        assert engine_after is not engine_during
    finally:
        engine_after.dispose()
        _clear_caches()


def test_encoded_submission_accepted_then_duplicate(api_client: TestClient) -> None:
    payload = encode_payload("node_3", 34, timestamp="2025-10-10 20:25:01")

    response = api_client.get("/ingest", params={"b": payload})

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "accepted"
    assert body["node_name"] == "node_3"
    assert body["temperature"] == 34.0
    assert body["humidity"] == 0.0
    assert body["time_received"] == "2025-10-10T20:25:01"

    replay = api_client.get("/ingest", params={"b": payload})

    assert replay.status_code == 409
    assert replay.json()["status"] == "rejected_duplicate"
    assert replay.json()["node_name"] == "node_3"


def test_encoded_payload_with_unescaped_plus_is_accepted(api_client: TestClient) -> None:
    NodeRegistry(build_default_engine()).register(SensorNode("node~1", "Adafruit"))
    payload = encode_payload("node~1", 20, timestamp="2025-10-10 20:25:01")
    assert "+" in payload

    response = api_client.get(f"/ingest?b={payload}")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "accepted"
    assert body["node_name"] == "node~1"


def test_plain_submission_with_synonyms(api_client: TestClient) -> None:
    response = api_client.get(
        "/ingest",
        params={"node": "node_1", "temp": "21.5", "hum": "40", "time": "2025-10-10 20:00:00"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["temperature"] == 21.5
    assert body["humidity"] == 40.0
    assert body["message"].startswith("Inserted: node_1")


def test_unknown_node_is_reported(api_client: TestClient) -> None:
    response = api_client.get("/ingest", params={"node_name": "node_9", "temperature": "20"})

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "rejected_unknown_node"
    assert body["field"] == "node"
    assert body["value"] == "node_9"


def test_out_of_range_temperature_is_reported(api_client: TestClient) -> None:
    response = api_client.get("/ingest", params={"node_name": "node_1", "temperature": "126"})

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "rejected_invalid"
    assert body["field"] == "temperature"
    assert body["value"] == "126"


def test_malformed_base64_is_reported(api_client: TestClient) -> None:
    response = api_client.get("/ingest", params={"b": "***"})

    assert response.status_code == 400
    assert "Invalid Base64" in response.json()["message"]


def test_missing_required_field_is_reported(api_client: TestClient) -> None:
    response = api_client.get("/ingest", params={"node_name": "node_1"})

    assert response.status_code == 400
    assert response.json()["field"] == "temperature"


def test_storage_failure_maps_to_service_unavailable(api_client: TestClient) -> None:
    class FailingIngestion:
        def ingest(self, submission):
            return StorageFailed(reason="database is locked")

    api_client.app.dependency_overrides[get_ingestion] = lambda: FailingIngestion()
    try:
        response = api_client.get("/ingest", params={"node_name": "node_1", "temperature": "20"})
    finally:
        api_client.app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["status"] == "failed"


def test_read_side_storage_failure_maps_to_service_unavailable(api_client: TestClient) -> None:
    class FailingQueries:
        def list_readings(self, node_id=None):
            raise StorageError("database unavailable")

    api_client.app.dependency_overrides[get_queries] = lambda: FailingQueries()
    try:
        response = api_client.get("/readings")
    finally:
        api_client.app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["detail"] == "database unavailable"


def test_read_endpoints(api_client: TestClient) -> None:
    for params in (
        {"node": "node_1", "temp": "22", "hum": "60", "time": "2025-10-10 20:05:00"},
        {"node": "node_1", "temp": "20", "hum": "40", "time": "2025-10-10 20:00:00"},
        {"node": "node_3", "temp": "30", "time": "2025-10-10 19:00:00"},
    ):
        assert api_client.get("/ingest", params=params).status_code == 201

    nodes = api_client.get("/nodes").json()
    assert [node["node_name"] for node in nodes] == ["node_1", "node_3"]
    assert nodes[0]["manufacturer"] == "Adafruit"

    all_rows = api_client.get("/readings").json()
    assert [(row["node_name"], row["temperature"]) for row in all_rows] == [
        ("node_1", 20.0),
        ("node_1", 22.0),
        ("node_3", 30.0),
    ]

    node_rows = api_client.get("/readings", params={"node": "node_1"}).json()
    assert [row["time_received"] for row in node_rows] == [
        "2025-10-10T20:00:00",
        "2025-10-10T20:05:00",
    ]

    aggregate = api_client.get("/readings/node_1/aggregate").json()
    assert aggregate == {
        "node_name": "node_1",
        "count": 2,
        "avg_temperature": 21.0,
        "avg_humidity": 50.0,
    }

    series = api_client.get("/readings/node_1/series").json()
    assert series["labels"] == ["2025-10-10T20:00:00", "2025-10-10T20:05:00"]
    assert series["temperatures"] == [20.0, 22.0]


def test_aggregate_for_node_without_readings(api_client: TestClient) -> None:
    response = api_client.get("/readings/node_1/aggregate")

    assert response.status_code == 200
    assert response.json() == {
        "node_name": "node_1",
        "count": 0,
        "avg_temperature": None,
        "avg_humidity": None,
    }


def test_healthcheck(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
