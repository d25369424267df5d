import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from config.settings import Settings, get_settings, validate_startup
from errors.handlers import register_exception_handlers
from health.service import HealthCheckService
from location_endpoints import router as location_router
from middleware.cors import setup_cors
from middleware.rate_limiter import setup_rate_limiting
from middleware.request_id import RequestIDMiddleware
from record_store.base import RecordStore
from record_store.elasticsearch_store import ElasticsearchRecordStore
from telemetry.service import initialize_telemetry

logger = logging.getLogger(__name__)

SERVICE_NAME = "Location Gateway"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the record store once at startup and close it at shutdown."""
    logger.info("🚀 Starting location gateway...")
    settings: Settings = app.state.settings

    owns_store = False
    if getattr(app.state, "record_store", None) is None:
        try:
            app.state.record_store = await run_in_threadpool(
                ElasticsearchRecordStore.from_settings, settings
            )
        except Exception as e:
            logger.error(f"❌ Failed to open record store: {e}")
            raise
        owns_store = True
        logger.info(f"✅ Record store ready on index {settings.store_index}")

    yield

    if owns_store:
        app.state.record_store.close()
        app.state.record_store = None
    logger.info("👋 Shutting down location gateway...")


def create_app(
    settings: Optional[Settings] = None,
    record_store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings
        record_store: Store to use instead of connecting to Elasticsearch at
            startup; the caller keeps ownership of it

    Returns:
        The configured application
    """
    settings = settings or get_settings()
    validate_startup(settings)
    initialize_telemetry(settings)

    app = FastAPI(title=f"{SERVICE_NAME} API", version=SERVICE_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.record_store = record_store

    register_exception_handlers(app)

    setup_cors(app, settings.cors_origins)

    # Added after CORS so it wraps it and every response gets a request ID
    app.add_middleware(RequestIDMiddleware)

    setup_rate_limiting(
        app,
        requests_per_minute=settings.rate_limit_requests_per_minute,
        enabled=settings.rate_limit_enabled,
    )

    app.include_router(location_router)
    app.include_router(health_router)

    return app


# =============================================================================
# Health Check Endpoints
# =============================================================================
# /health        200 while the process accepts requests
# /health/live   200 while the process runs, dependencies ignored
# /health/ready  200 when the record store answers, 503 with reasons otherwise
# =============================================================================

health_router = APIRouter()


def get_health_check_service(request: Request) -> HealthCheckService:
    return HealthCheckService(
        store=getattr(request.app.state, "record_store", None),
        check_timeout=5.0
    )


@health_router.get("/")
async def root():
    return {"message": f"{SERVICE_NAME} is running"}


@health_router.get("/health")
async def health_basic(service: HealthCheckService = Depends(get_health_check_service)):
    """
    Basic health check endpoint.

    Returns 200 OK when the service is accepting requests, without
    checking the record store.
    """
    result = await service.check_health()
    return {
        "status": result["status"],
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": result["timestamp"]
    }


@health_router.get("/health/ready")
async def health_ready(service: HealthCheckService = Depends(get_health_check_service)):
    """
    Readiness check endpoint with record store verification.

    Returns:
        JSONResponse: 200 when the store answers, 503 with failure reasons otherwise
    """
    health_status = await service.check_readiness()
    response_data = {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        **health_status.to_dict(),
    }

    if health_status.status == "unhealthy":
        response_data["failure_reasons"] = [
            {"dependency": dep.name, "error": dep.error}
            for dep in health_status.dependencies
            if not dep.healthy
        ]
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@health_router.get("/health/live")
async def health_live(service: HealthCheckService = Depends(get_health_check_service)):
    """
    Liveness check endpoint.

    Returns 200 OK if the process is running, regardless of dependency status.
    """
    result = await service.check_liveness()
    return {
        "status": result["status"],
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": result["timestamp"]
    }


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level="info")
