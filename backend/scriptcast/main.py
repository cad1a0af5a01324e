"""
FastAPI main application for the narrated video generator.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .dependencies import build_context
from .models.config import load_config
from .routers import video_router, jobs_router
from .utils.logger import setup_logging

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE"))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting scriptcast API...")

    config = load_config()
    context = build_context(config)
    removed = context.file_manager.cleanup_old_temp_files()
    if removed:
        logger.info(f"Removed {removed} stale job directories")

    app.state.context = context

    yield

    # Shutdown
    logger.info("Shutting down scriptcast API...")
    await context.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="scriptcast API",
        description="Narrated video generation from long text scripts",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(video_router)
    app.include_router(jobs_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "scriptcast API",
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
