"""
Warranty Claim Service - Main Application
=========================================

FastAPI application for the warranty claim lifecycle: eligibility, claim
submission, admin review, refund settlement and realtime claim updates.

Version: 0.1.0
"""

import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from shared.config import StorageBackend, settings
from shared.database.kafka import KafkaClient
from shared.database.postgres import PostgresClient
from shared.database.redis import RedisClient
from shared.logging import bind_context, clear_context, get_logger, setup_logging
from shared.models.common import ErrorResponse, HealthResponse

from services.warranty.dependencies import get_warranty_service, set_warranty_service
from services.warranty.errors import WarrantyClaimError
from services.warranty.routes import admin, claims, evidence, realtime

# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="warranty",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    cfg = settings.warranty
    logger.info(
        "warranty_service_starting",
        environment=settings.environment.value,
        port=cfg.port,
        storage_backend=cfg.storage_backend.value,
    )

    # Startup
    try:
        if cfg.storage_backend == StorageBackend.POSTGRES:
            PostgresClient.get_engine()
            logger.info("postgres_connected")

        if cfg.cache_enabled:
            RedisClient.get_client()
            logger.info("redis_connected")

        if cfg.kafka_forwarding:
            await KafkaClient.get_producer()
            logger.info("kafka_connected")

        get_warranty_service()

    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("warranty_service_shutting_down")
    set_warranty_service(None)
    if cfg.storage_backend == StorageBackend.POSTGRES:
        await PostgresClient.close()
    if cfg.cache_enabled:
        await RedisClient.close()
    if cfg.kafka_forwarding:
        await KafkaClient.close()


# Create FastAPI application
app = FastAPI(
    title="Canvango Warranty Claim Service",
    description="Warranty claims, admin review and refunds for purchased accounts",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag every log entry of a request with its request id."""
    clear_context()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    bind_context(request_id=request_id, method=request.method, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Service health check.

    Only the backends enabled in configuration are probed.
    """
    cfg = settings.warranty
    components: dict[str, dict[str, Any]] = {}

    if cfg.storage_backend == StorageBackend.POSTGRES:
        components["postgres"] = await PostgresClient.health_check()
    else:
        components["storage"] = {"status": "healthy", "backend": cfg.storage_backend.value}

    if cfg.cache_enabled:
        components["redis"] = await RedisClient.health_check()

    if cfg.kafka_forwarding:
        components["kafka"] = await KafkaClient.health_check()

    all_healthy = all(
        c.get("status") == "healthy" for c in components.values()
    )

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        service="warranty",
        version="0.1.0",
        components=components,
    )


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "Canvango Warranty Claim Service",
        "version": "0.1.0",
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    claims.router,
    prefix="/api/v1/warranty",
    tags=["Warranty Claims"],
)

app.include_router(
    realtime.member_router,
    prefix="/api/v1/warranty",
)

app.include_router(
    admin.router,
    prefix="/api/v1/admin/warranty-claims",
    tags=["Admin Warranty Claims"],
)

app.include_router(
    realtime.admin_router,
    prefix="/api/v1/admin/warranty-claims",
)

app.include_router(
    evidence.router,
    prefix="/evidence",
)


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(WarrantyClaimError)
async def warranty_exception_handler(request: Request, exc: WarrantyClaimError) -> JSONResponse:
    """Map claim lifecycle errors to their status codes."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "warranty_claim_error",
        error_code=exc.code,
        error=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
    )
    body = ErrorResponse(error=exc.message, error_code=exc.code, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    body = ErrorResponse(error=str(exc.detail), error_code=f"HTTP_{exc.status_code}")
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json"),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    body = ErrorResponse(error="Internal server error", error_code="INTERNAL_ERROR")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(mode="json"),
    )


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.warranty.main:app",
        host="0.0.0.0",
        port=settings.warranty.port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
