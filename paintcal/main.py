"""paintcal - scheduling and task tracking for a painting contractor."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from paintcal.core.config import settings
from paintcal.core.db_client import close_connection, init_db
from paintcal.core.logging import configure_logfire, instrument_fastapi
from paintcal.core.realtime import changefeed
from paintcal.interface.api_router import router as api_router


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Fail fast on configuration production cannot run without."""
    logger.info("startup_validation_begin")
    try:
        if settings.is_production:
            settings.require_credential("logfire_token", "Pydantic Logfire")
        logger.info("startup_validation_complete", extra={"status": "ok", "environment": settings.environment})
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so validation logs are captured
    configure_logfire()
    validate_startup_configuration()

    await init_db()
    logger.info("Database initialized", extra={"db_path": settings.sqlite_db_path})
    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="paintcal",
    description="Project scheduling and task tracking for painting crews",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(api_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/realtime")
async def realtime_health_check() -> JSONResponse:
    """Live query listener counts per collection."""
    listeners = changefeed.get_health_status()
    return JSONResponse(
        content={"status": "healthy", "listeners": listeners, "total": changefeed.listener_count()},
        status_code=200,
    )
