"""FastAPI application entrypoint for the Audiobook Library Sync API."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, jobs, library, sources, sync
from core.config import get_settings
from db.session import create_db_and_tables
from services.job_recovery import mark_inflight_jobs_interrupted

# Configure logging to show INFO level and above
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

# Also configure uvicorn's logger to avoid duplicates
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

# Global shutdown event for coordinating graceful shutdown
shutdown_event: asyncio.Event | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager for startup/shutdown events."""
    global shutdown_event

    logger.info("Starting Audiobook Library Sync API...")
    config = get_settings()
    config.ensure_directories()
    await create_db_and_tables()
    interrupted = await mark_inflight_jobs_interrupted()
    if interrupted:
        logger.warning("Marked %d interrupted sync job(s) as failed", interrupted)

    shutdown_event = asyncio.Event()
    app.state.shutdown_event = shutdown_event

    logger.info("API startup complete")
    yield

    logger.info("Initiating graceful shutdown...")
    if shutdown_event:
        shutdown_event.set()

    try:
        logger.info("Waiting for running sync jobs to finish...")
        await jobs.job_manager.shutdown(timeout=25.0)  # Leave 5s buffer for docker
    except Exception as e:
        logger.warning("Error during job manager shutdown: %s", e)

    logger.info("Graceful shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_settings()

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="REST API reconciling audiobook sources into one library",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(library.router, prefix="/library", tags=["Library"])
    app.include_router(sources.router, prefix="/sources", tags=["Sources"])
    app.include_router(sync.router, prefix="/sync", tags=["Sync"])
    app.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_settings()
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )
