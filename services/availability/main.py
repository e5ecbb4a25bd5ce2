from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.availability.api import include_routers
from services.availability.services.availability_service import get_availability_service
from services.availability.settings import get_settings
from services.common.http_errors import register_scheduling_exception_handlers
from services.common.logging_config import (
    create_request_logging_middleware,
    get_logger,
    log_service_shutdown,
    log_service_startup,
    setup_service_logging,
)
from services.common.telemetry import setup_telemetry

# Set up centralized logging - will be initialized in lifespan
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup event logic
    settings = get_settings()

    setup_service_logging(
        service_name="availability",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )
    setup_telemetry("availability", "0.1.0")

    service = get_availability_service()
    if settings.scheduler_enabled:
        service.start_scheduler()

    log_service_startup(
        "availability",
        version="0.1.0",
        storage_backend=settings.storage_backend,
        scheduler_enabled=settings.scheduler_enabled,
    )
    yield
    # Shutdown event logic
    await service.shutdown()
    log_service_shutdown("availability")


app = FastAPI(
    title="Availability Service",
    version="0.1.0",
    description="Availability profiles, slot generation and booking capacity.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.middleware("http")(create_request_logging_middleware())

# Register standardized exception handlers
register_scheduling_exception_handlers(app)

include_routers(app)


@app.get("/")
def root() -> dict:
    logger.info("Root endpoint accessed")
    return {"message": "Welcome to the Availability Service"}


@app.get("/health")
def health() -> dict:
    logger.info("Health check endpoint accessed")
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.availability.main:app",
        host="0.0.0.0",
        port=8007,
        log_level=get_settings().log_level.lower(),
        access_log=False,  # Request logging is handled by the middleware
    )
