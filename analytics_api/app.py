"""
FastAPI analytics service for the job application tracker.

Serves the reporting API under /api/v1/analytics and, when automation is
enabled, runs the automation scheduler alongside the request handlers.
"""

import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.common.logger import setup_logging

from . import __version__
from .config import get_settings, validate_config_on_startup
from .dependencies import get_scheduler
from .models import HealthResponse
from .routes import analytics_router

settings = get_settings()

setup_logging(level=settings.log_level, format=settings.log_format)
logger = logging.getLogger(__name__)

# Validate configuration at startup
validate_config_on_startup()

app = FastAPI(title="Job Tracker Analytics", version=__version__)

# Configure CORS using validated settings
if settings.cors_origins_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(analytics_router)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check for container orchestration; no auth, no database access."""
    return HealthResponse(
        status="healthy",
        automation_running=settings.enable_automation and get_scheduler().is_running,
        timestamp=datetime.utcnow(),
        version=__version__,
    )


@app.on_event("startup")
async def start_automation():
    """Start the automation scheduler if enabled."""
    if not settings.enable_automation:
        logger.info("Automation disabled, scheduler not started")
        return

    try:
        await get_scheduler().start()
    except Exception as e:
        logger.error(f"Failed to start automation scheduler: {e}")


@app.on_event("shutdown")
async def stop_automation():
    """Stop the scheduler loops on shutdown."""
    if settings.enable_automation:
        await get_scheduler().stop()
