from __future__ import annotations

import base64
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List

import pytest

from datastore.node_registry import NodeRegistry
from datastore.reading_store import ReadingStore
from models.records import NewReading, SensorNode
from models.submissions import EncodedSubmission, PlainSubmission
from services.decoder import ReadingDecoder, encode_payload
from services.errors import StorageError
from services.ingestion import IngestionService
from services.outcomes import (
    Accepted,
    OutcomeStatus,
    RejectedDuplicate,
    RejectedInvalid,
    RejectedUnknownNode,
    StorageFailed,
)
from services.validator import ReadingValidator

EXAMPLE_PAYLOAD = base64.b64encode(
    b"nodeId=node_3&nodeTemp=34&timeReceived=2025-10-10 20:25:01"
).decode("ascii")


@pytest.fixture()
def service(registry: NodeRegistry, store: ReadingStore) -> IngestionService:
    return IngestionService(
        decoder=ReadingDecoder(),
        validator=ReadingValidator(registry),
        store=store,
    )


class RecordingRegistry:
    def __init__(self) -> None:
        self.calls: List[str] = []

    def exists(self, node_id: str) -> bool:
        self.calls.append(node_id)
        return True


class RecordingStore:
    def __init__(self, error: Exception | None = None) -> None:
        self.inserted: List[NewReading] = []
        self.error = error

    def insert(self, reading: NewReading):
        self.inserted.append(reading)
        if self.error is not None:
            raise self.error
        raise AssertionError("insert should not succeed in this test")


def test_encoded_example_is_accepted_then_duplicate(service: IngestionService) -> None:
    first = service.ingest(EncodedSubmission(EXAMPLE_PAYLOAD))

    assert isinstance(first, Accepted)
    assert first.status is OutcomeStatus.accepted
    assert first.reading.node_id == "node_3"
    assert first.reading.temperature == 34.0
    assert first.reading.humidity == 0.0
    assert first.reading.timestamp == datetime(2025, 10, 10, 20, 25, 1)

    second = service.ingest(EncodedSubmission(EXAMPLE_PAYLOAD))

    assert isinstance(second, RejectedDuplicate)
    assert second.node_id == "node_3"
    assert second.timestamp == datetime(2025, 10, 10, 20, 25, 1)
    assert "already exists" in second.message


def test_accepted_reading_matches_plain_input(
    service: IngestionService, store: ReadingStore
) -> None:
    outcome = service.ingest(
        PlainSubmission({"node": "node_1", "temp": "-12.5", "hum": "87.25", "time": "2025-01-02 03:04:05"})
    )

    assert isinstance(outcome, Accepted)
    assert outcome.reading.temperature == -12.5
    assert outcome.reading.humidity == 87.25
    assert store.query_by_node("node_1") == [outcome.reading]


def test_plain_submission_without_time_is_stamped_by_store(service: IngestionService) -> None:
    outcome = service.ingest(PlainSubmission({"node_name": "node_2", "temperature": "19"}))

    assert isinstance(outcome, Accepted)
    assert isinstance(outcome.reading.timestamp, datetime)


def test_unknown_node_is_rejected_without_storing(
    service: IngestionService, store: ReadingStore
) -> None:
    payload = encode_payload("node_42", 20, timestamp="2025-10-10 20:25:01")

    outcome = service.ingest(EncodedSubmission(payload))

    assert isinstance(outcome, RejectedUnknownNode)
    assert outcome.node_id == "node_42"
    assert store.query_all() == []


@pytest.mark.parametrize(
    ("params", "field"),
    [
        ({"node": "node_1", "temp": "-41"}, "temperature"),
        ({"node": "node_1", "temp": "126"}, "temperature"),
        ({"node": "node_1", "temp": "20", "hum": "101"}, "humidity"),
        ({"node": "node_1", "temp": "20", "hum": "-0.5"}, "humidity"),
        ({"node": "node_1", "temp": "20", "time": "not-a-time"}, "timestamp"),
        ({"node": "node_1", "temp": "20", "time": "0001-01-01T00:00:00+01:00"}, "timestamp"),
        ({"node": "node_1", "temp": "1_0"}, "temperature"),
        ({"node": "node_1"}, "temperature"),
    ],
)
def test_invalid_submissions_are_rejected_without_storing(
    service: IngestionService, store: ReadingStore, params, field: str
) -> None:
    outcome = service.ingest(PlainSubmission(params))

    assert isinstance(outcome, RejectedInvalid)
    assert outcome.field == field
    assert store.query_all() == []


@pytest.mark.parametrize("temperature", ["-40", "125"])
def test_temperature_boundaries_are_accepted(service: IngestionService, temperature: str) -> None:
    outcome = service.ingest(PlainSubmission({"node": "node_1", "temp": temperature, "time": "2025-10-10 20:00:00"}))

    assert isinstance(outcome, Accepted)


@pytest.mark.parametrize("humidity", ["0", "100"])
def test_humidity_boundaries_are_accepted(service: IngestionService, humidity: str) -> None:
    outcome = service.ingest(
        PlainSubmission({"node": "node_1", "temp": "20", "hum": humidity, "time": "2025-10-10 20:00:00"})
    )

    assert isinstance(outcome, Accepted)
    assert outcome.reading.humidity == float(humidity)


def test_malformed_base64_never_touches_registry_or_store() -> None:
    registry = RecordingRegistry()
    store = RecordingStore()
    service = IngestionService(ReadingDecoder(), ReadingValidator(registry), store)  # type: ignore[arg-type]

    outcome = service.ingest(EncodedSubmission("%%%not-base64%%%"))

    assert isinstance(outcome, RejectedInvalid)
    assert "Invalid Base64" in outcome.reason
    assert registry.calls == []
    assert store.inserted == []


def test_storage_failure_becomes_failed_outcome() -> None:
    store = RecordingStore(error=StorageError("database is locked"))
    service = IngestionService(ReadingDecoder(), ReadingValidator(RecordingRegistry()), store)  # type: ignore[arg-type]

    outcome = service.ingest(PlainSubmission({"node": "node_1", "temp": "20"}))

    assert isinstance(outcome, StorageFailed)
    assert outcome.status is OutcomeStatus.failed
    assert "database is locked" in outcome.reason


def test_registry_changes_are_seen_between_calls(
    service: IngestionService, registry: NodeRegistry
) -> None:
    params = {"node": "node_7", "temp": "20", "time": "2025-10-10 20:00:00"}
    assert isinstance(service.ingest(PlainSubmission(params)), RejectedUnknownNode)

    registry.register(SensorNode("node_7", "Bosch"))

    assert isinstance(service.ingest(PlainSubmission(params)), Accepted)


def test_concurrent_duplicates_store_exactly_one_row(
    service: IngestionService, store: ReadingStore
) -> None:
    barrier = threading.Barrier(2)

    def submit():
        barrier.wait(timeout=5)
        return service.ingest(EncodedSubmission(EXAMPLE_PAYLOAD))

    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [executor.submit(submit) for _ in range(2)]
        outcomes = [future.result(timeout=30) for future in futures]

    statuses = sorted(outcome.status.value for outcome in outcomes)
    assert statuses == ["accepted", "rejected_duplicate"]
    assert len(store.query_by_node("node_3")) == 1


def test_outcomes_are_logged_with_context(service: IngestionService, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="services.ingestion"):
        service.ingest(EncodedSubmission(EXAMPLE_PAYLOAD))
        service.ingest(PlainSubmission({"node": "ghost", "temp": "20"}))

    records = [record for record in caplog.records if record.name == "services.ingestion"]
    outcomes = [getattr(record, "outcome", None) for record in records]
    assert outcomes == ["accepted", "rejected_unknown_node"]
    assert getattr(records[0], "node_id") == "node_3"
    assert getattr(records[0], "encoding") == "encoded"
    assert getattr(records[1], "encoding") == "plain"
    assert records[1].levelno == logging.WARNING
