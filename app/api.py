"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from app.schemas import (
    IngestionResponse,
    NodeAggregateOut,
    ReadingOut,
    ReadingSeriesOut,
    SensorNodeOut,
)
from models.submissions import EncodedSubmission, PlainSubmission, Submission
from services.errors import StorageError
from services.ingestion import IngestionService, build_default_ingestion
from services.outcomes import OutcomeStatus
from services.queries import QueryService, build_default_queries

ENCODED_PARAM = "b"

_OUTCOME_STATUS_CODES = {
    OutcomeStatus.accepted: status.HTTP_201_CREATED,
    OutcomeStatus.rejected_invalid: status.HTTP_400_BAD_REQUEST,
    OutcomeStatus.rejected_unknown_node: status.HTTP_404_NOT_FOUND,
    OutcomeStatus.rejected_duplicate: status.HTTP_409_CONFLICT,
    OutcomeStatus.failed: status.HTTP_503_SERVICE_UNAVAILABLE,
}

router = APIRouter()


def get_ingestion() -> IngestionService:
    return build_default_ingestion()


def get_queries() -> QueryService:
    return build_default_queries()


def _submission_from_query(request: Request) -> Submission:
    params = request.query_params
    if ENCODED_PARAM in params:
        # Query-string parsing turns an unescaped "+" into a space.
        return EncodedSubmission(payload=params[ENCODED_PARAM].replace(" ", "+"))
    return PlainSubmission(params=dict(params))


def _storage_unavailable(exc: StorageError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


@router.get(
    "/ingest",
    response_model=IngestionResponse,
    summary="Submit one reading, either base64-encoded (?b=...) or as plain parameters.",
    responses={
        status.HTTP_201_CREATED: {"model": IngestionResponse},
        status.HTTP_400_BAD_REQUEST: {"model": IngestionResponse},
        status.HTTP_409_CONFLICT: {"model": IngestionResponse},
        status.HTTP_404_NOT_FOUND: {"model": IngestionResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": IngestionResponse},
    },
)
def ingest_reading(
    request: Request,
    response: Response,
    service: IngestionService = Depends(get_ingestion),
) -> IngestionResponse:
    outcome = service.ingest(_submission_from_query(request))
    response.status_code = _OUTCOME_STATUS_CODES[outcome.status]
    return IngestionResponse.from_outcome(outcome)


@router.get(
    "/nodes",
    response_model=List[SensorNodeOut],
    summary="List registered sensor nodes ordered by name.",
)
def list_nodes(queries: QueryService = Depends(get_queries)) -> List[SensorNodeOut]:
    try:
        nodes = queries.list_nodes()
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return [SensorNodeOut.from_node(node) for node in nodes]


@router.get(
    "/readings",
    response_model=List[ReadingOut],
    summary="List readings for one node, or for every node when none is given.",
)
def list_readings(
    node: Optional[str] = Query(None, description="Restrict results to this node."),
    queries: QueryService = Depends(get_queries),
) -> List[ReadingOut]:
    try:
        readings = queries.list_readings(node)
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return [ReadingOut.from_reading(reading) for reading in readings]


@router.get(
    "/readings/{node}/aggregate",
    response_model=NodeAggregateOut,
    summary="Average temperature and humidity for a node.",
)
def node_aggregate(
    node: str,
    queries: QueryService = Depends(get_queries),
) -> NodeAggregateOut:
    try:
        aggregate = queries.node_aggregate(node)
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return NodeAggregateOut.from_aggregate(aggregate)


@router.get(
    "/readings/{node}/series",
    response_model=ReadingSeriesOut,
    summary="Time-ordered series of a node's readings for charting.",
)
def reading_series(
    node: str,
    queries: QueryService = Depends(get_queries),
) -> ReadingSeriesOut:
    try:
        series = queries.reading_series(node)
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return ReadingSeriesOut.from_series(series)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
