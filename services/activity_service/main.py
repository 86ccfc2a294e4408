"""Activity Service Main Application"""
import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.activity_service.api import activities, conflicts, enrollments
from shared.config import settings
from shared.database import close_db, init_db
from shared.domain.exceptions import DomainException
from shared.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging(settings)
    logger.info("Starting Activity Service", environment=settings.environment)

    # Retry database connection with backoff
    for attempt in range(5):
        try:
            await init_db()
            logger.info("Activity Service ready - database connected")
            break
        except Exception as e:
            if attempt < 4:
                wait_time = 2 ** attempt  # 1, 2, 4, 8 seconds
                logger.warning(
                    "Database connection failed, retrying",
                    attempt=attempt + 1,
                    retry_in=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error("Failed to connect to database after 5 attempts - starting anyway")

    yield

    await close_db()
    logger.info("Activity Service shutdown complete")


app = FastAPI(
    title="Campus Activity Service",
    description="Activity enrollment with capacity limits, waitlists and schedule-conflict checks",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Include routers
app.include_router(enrollments.router, prefix=f"{settings.api_v1_prefix}/enrollments", tags=["Enrollments"])
app.include_router(activities.router, prefix=f"{settings.api_v1_prefix}/activities", tags=["Activities"])
app.include_router(conflicts.router, prefix=f"{settings.api_v1_prefix}/conflicts", tags=["Conflicts"])


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """
    Handle domain exceptions with structured error responses.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSONResponse: Structured error response
    """
    logger.warning(
        "Domain exception",
        path=request.url.path,
        method=request.method,
        error_code=exc.error_code.value,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "activity_service",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.activity_service.main:app",
        host=settings.activity_service_host,
        port=settings.activity_service_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
