"""
backend/matchdesk/main.py

Purpose:
    FastAPI application bootstrap: logging, MongoDB, provider registry and
    dataset cache wiring, scheduler lifecycle (prediction corrector and data
    refresh), routers and error mapping.

Dependencies:
    - matchdesk.database
    - matchdesk.providers.registry
    - matchdesk.services.sports_data_service
    - matchdesk.workers.prediction_corrector
    - matchdesk.workers.data_refresh
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

from matchdesk.config import settings
import matchdesk.database as _db
from matchdesk.database import connect_db, close_db
from matchdesk.middleware.logging import StructuredLoggingMiddleware, setup_logging
from matchdesk.providers.base import NormalizationError, ProviderError
from matchdesk.providers.registry import ProviderRegistry
from matchdesk.services.dataset_store import DatasetNotFoundError, build_dataset_store
from matchdesk.services.sports_data_service import ResourceNotFoundError, SportsDataService
from matchdesk.workers.data_refresh import data_refresh_job
from matchdesk.workers.prediction_corrector import (
    CorrectionCycleAlreadyRunningError,
    prediction_corrector,
)

logger = logging.getLogger("matchdesk")
scheduler = AsyncIOScheduler(timezone="UTC")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()

    registry = ProviderRegistry.get()
    SportsDataService._instance = SportsDataService(
        registry, build_dataset_store(settings.DATASET_STORE_BACKEND),
    )
    logger.info("Dataset cache backend: %s", settings.DATASET_STORE_BACKEND)

    scheduler.start()
    if settings.CORRECTION_ENABLED:
        prediction_corrector.start(scheduler)
    else:
        logger.info("Prediction corrector disabled via config")
    if settings.DATA_REFRESH_ENABLED:
        data_refresh_job.start(scheduler)
    else:
        logger.info("Data refresh disabled via config")
    logger.info("Background scheduler started")

    yield

    prediction_corrector.stop()
    data_refresh_job.stop()
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await registry.aclose()
    await close_db()


app = FastAPI(
    title="matchdesk",
    description="Multi-provider sports data and prediction settlement",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)
app.add_middleware(StructuredLoggingMiddleware)

from matchdesk.routers.corrections import router as corrections_router, tickets_router
from matchdesk.routers.sports import router as sports_router

app.include_router(sports_router)
app.include_router(corrections_router)
app.include_router(tickets_router)


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.error("Provider failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"detail": "Upstream data provider failed.", "provider": exc.provider, "operation": exc.operation},
    )


@app.exception_handler(NormalizationError)
async def normalization_error_handler(request: Request, exc: NormalizationError):
    logger.error("Unusable provider payload on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Upstream data provider returned unexpected data."})


@app.exception_handler(DatasetNotFoundError)
async def dataset_not_found_handler(request: Request, exc: DatasetNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ResourceNotFoundError)
async def resource_not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(CorrectionCycleAlreadyRunningError)
async def cycle_running_handler(request: Request, exc: CorrectionCycleAlreadyRunningError):
    return JSONResponse(status_code=409, content={"detail": "Correction cycle already running."})


async def db_unavailable_handler(request: Request, exc: Exception):
    logger.error("Database unavailable (%s): %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


for _db_error in (ServerSelectionTimeoutError, ConnectionFailure):
    app.add_exception_handler(_db_error, db_unavailable_handler)


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies DB connection and provider circuit state."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    registry = ProviderRegistry.get()
    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "providers": registry.circuit_states(),
        "corrector": {
            "is_running": prediction_corrector.is_running,
            "cycle_in_progress": prediction_corrector.cycle_in_progress,
        },
    }
