from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.database import build_default_engine
from logging_config import configure_logging
from services.ingestion import build_default_ingestion
from services.queries import build_default_queries


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    engine = build_default_engine()
    try:
        yield
    finally:
        build_default_ingestion.cache_clear()
        build_default_queries.cache_clear()
        engine.dispose()
        build_default_engine.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Telemetry Ingest",
        description="Validates and stores sensor node readings and serves the stored series.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
