"""Decode, validate and store orchestration for inbound readings."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from datastore.database import build_default_engine
from datastore.node_registry import NodeRegistry
from datastore.reading_store import ReadingStore
from models.submissions import Submission
from services.decoder import ReadingDecoder, submission_encoding
from services.errors import (
    DecodeError,
    DuplicateError,
    StorageError,
    UnknownNodeError,
    ValidationError,
)
from services.outcomes import (
    Accepted,
    IngestionOutcome,
    RejectedDuplicate,
    RejectedInvalid,
    RejectedUnknownNode,
    StorageFailed,
)
from services.validator import ReadingValidator

logger = logging.getLogger(__name__)


class IngestionService:
    """Runs one submission through decoder, validator and store.

    ``ingest`` always returns exactly one outcome; nothing from the error
    taxonomy propagates to the caller and nothing is written unless the
    reading passed validation.
    """

    def __init__(
        self,
        decoder: ReadingDecoder,
        validator: ReadingValidator,
        store: ReadingStore,
    ) -> None:
        self.decoder = decoder
        self.validator = validator
        self.store = store

    def ingest(self, submission: Submission) -> IngestionOutcome:
        outcome = self._attempt(submission)
        self._log_outcome(outcome, submission_encoding(submission))
        return outcome

    def _attempt(self, submission: Submission) -> IngestionOutcome:
        try:
            candidate = self.decoder.decode(submission)
        except DecodeError as exc:
            return RejectedInvalid(reason=str(exc), field=exc.field)

        try:
            pending = self.validator.validate(candidate)
        except UnknownNodeError as exc:
            return RejectedUnknownNode(node_id=exc.node_id)
        except ValidationError as exc:
            return RejectedInvalid(reason=str(exc), field=exc.field, value=exc.value)
        except StorageError as exc:
            return StorageFailed(reason=str(exc))

        try:
            reading = self.store.insert(pending)
        except DuplicateError as exc:
            return RejectedDuplicate(node_id=exc.node_id, timestamp=exc.timestamp)
        except ValidationError as exc:
            return RejectedInvalid(reason=str(exc), field=exc.field, value=exc.value)
        except StorageError as exc:
            return StorageFailed(reason=str(exc))

        return Accepted(reading=reading)

    @staticmethod
    def _log_outcome(outcome: IngestionOutcome, encoding: Optional[str]) -> None:
        extra: dict[str, object] = {"outcome": outcome.status.value, "encoding": encoding}
        if isinstance(outcome, Accepted):
            extra["node_id"] = outcome.reading.node_id
            extra["timestamp"] = outcome.reading.timestamp
            logger.info("Reading accepted", extra=extra)
        elif isinstance(outcome, RejectedDuplicate):
            extra["node_id"] = outcome.node_id
            extra["timestamp"] = outcome.timestamp
            logger.info("Duplicate reading rejected", extra=extra)
        elif isinstance(outcome, RejectedUnknownNode):
            extra["node_id"] = outcome.node_id
            logger.warning("Reading for unknown node rejected", extra=extra)
        elif isinstance(outcome, RejectedInvalid):
            extra["reason"] = outcome.reason
            extra["field"] = outcome.field
            extra["invalid_value"] = outcome.value
            logger.warning("Invalid reading rejected", extra=extra)
        else:
            extra["reason"] = outcome.reason
            logger.error("Reading could not be stored", extra=extra)


@lru_cache
def build_default_ingestion() -> IngestionService:
    """Factory that wires the pipeline against the default database."""
    engine = build_default_engine()
    registry = NodeRegistry(engine)
    return IngestionService(
        decoder=ReadingDecoder(),
        validator=ReadingValidator(registry),
        store=ReadingStore(engine),
    )
