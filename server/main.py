"""
FastAPI backend for multi-channel prospecting workflows.

Runs the per-contact workflow engine and the campaign dispatch queue, both
on an APScheduler interval and on demand over HTTP.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.health import get_health_status, set_startup_time
from core.logging import configure_logging, get_logger
from routers import workflow, campaigns

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting prospecting workflow service")
    set_startup_time()

    await container.database().startup()
    await container.message_sender().startup()

    from services.scheduler import start_scheduler, shutdown_scheduler, register_batch_jobs
    if settings.scheduler_enabled:
        register_batch_jobs(container.workflow_service(), settings.batch_interval_seconds)
        start_scheduler()

    logger.info("Services started successfully")
    yield

    # Shutdown
    shutdown_scheduler()
    await container.message_sender().shutdown()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Prospecting Workflow Service",
    version="1.0.0",
    description="Multi-channel outreach workflow engine and campaign dispatch queue",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception", path=request.url.path,
                         error=f"{type(e).__name__}: {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


# Exception handler middleware BEFORE CORS to catch all errors
app.add_middleware(CatchAllExceptionsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(workflow.router)
app.include_router(campaigns.router)


@app.get("/health")
async def health_check():
    """Health check with database probe."""
    from services.scheduler import get_scheduler

    health = await get_health_status(
        container.database(), settings, scheduler_running=get_scheduler().running
    )
    return {
        **health,
        "service": "prospecting-workflows",
        "version": app.version,
        "environment": "development" if settings.is_development else "production",
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting prospecting workflow service",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )
