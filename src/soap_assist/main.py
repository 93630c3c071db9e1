"""
SOAP Assist Application

FastAPI application entrypoint for the SOAP-note suggestion service.
Neither Elasticsearch nor the record store is required at startup: the
suggestion endpoints degrade to template fallbacks until they come back.

Start locally:
    uvicorn soap_assist.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from soap_assist.api.v1.soap import router as soap_router
from soap_assist.core.config import settings
from soap_assist.core.database import check_database, dispose_engine
from soap_assist.core.exceptions import MissingTenantError, SuggestionIndexError
from soap_assist.core.logging import setup_logging
from soap_assist.schemas.soap import (
    DatabaseHealth,
    ElasticsearchHealth,
    HealthResponse,
)
from soap_assist.services.index_client import close_index_client, get_index_client
from soap_assist.services.llm import llm_service

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def ensure_search_index() -> bool:
    """
    Create the suggestion index if it is missing.

    Non-blocking check - application continues if Elasticsearch is down.
    """
    try:
        await get_index_client().ensure_index()
        return True
    except SuggestionIndexError as e:
        logger.warning("Elasticsearch not reachable - suggestions use fallbacks: %s", e)
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Ensures the suggestion index exists (optional, logs warning)
        - Checks record store connectivity (optional, logs warning)

    Shutdown:
        - Closes the index and OpenAI clients, disposes the database engine
    """
    logger.info("Starting %s...", settings.PROJECT_NAME)
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    await ensure_search_index()

    if not await check_database():
        logger.warning("Record store not reachable - patient lookups disabled")

    yield  # Application runs here

    logger.info("Shutting down %s...", settings.PROJECT_NAME)
    await close_index_client()
    await llm_service.aclose()
    await dispose_engine()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Veterinary SOAP-note suggestions, completions and paraphrasing.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(soap_router, prefix="/api/v1/soap", tags=["SOAP"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render schema violations as 400 with field-level details."""
    details = [
        {
            "loc": [str(part) for part in error.get("loc", [])],
            "msg": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]
    logger.info(
        "Validation error on %s %s: %s",
        request.method,
        request.url.path,
        "; ".join(f"{'.'.join(d['loc'])}: {d['msg']}" for d in details),
    )
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder(
            {"success": False, "error": "Invalid request", "details": details}
        ),
    )


@app.exception_handler(MissingTenantError)
async def missing_tenant_handler(request: Request, exc: MissingTenantError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"Missing tenant context ({settings.TENANT_HEADER} header)",
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "A dependency is down"}},
)
async def health_check() -> JSONResponse:
    """
    Deep health check for load balancers and orchestrators.

    Probes the Elasticsearch cluster and the record store; any failure
    returns 503 with ``ok=false`` and the per-dependency status.
    """
    try:
        cluster = await get_index_client().cluster_health()
        es = ElasticsearchHealth(
            status=cluster.get("status", "unknown"),
            cluster_name=cluster.get("cluster_name"),
        )
    except SuggestionIndexError as e:
        logger.warning("Health check: Elasticsearch unreachable: %s", e)
        es = ElasticsearchHealth(status="unreachable")

    db_ok = await check_database()
    db = DatabaseHealth(status="connected" if db_ok else "disconnected")

    ok = es.status != "unreachable" and db_ok
    body = HealthResponse(ok=ok, timestamp=datetime.now(UTC), elasticsearch=es, database=db)
    return JSONResponse(
        status_code=200 if ok else 503,
        content=jsonable_encoder(body),
    )
