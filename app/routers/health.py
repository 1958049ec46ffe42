"""
Health check endpoints for the render service.
"""

import shutil

from fastapi import APIRouter, Request

from app.config import get_settings
from app.schemas.responses import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Ready when the pipeline is initialized and the encoder is on PATH. The
    browser launches lazily, so a disconnected browser does not block readiness.
    """
    settings = get_settings()
    pipeline = getattr(request.app.state, "pipeline", None)
    browser_manager = getattr(request.app.state, "browser_manager", None)
    template_store = getattr(request.app.state, "template_store", None)

    encoder_available = shutil.which(settings.ffmpeg_path) is not None

    return ReadinessResponse(
        ready=pipeline is not None and encoder_available,
        encoder_available=encoder_available,
        browser_connected=browser_manager is not None and browser_manager.is_connected,
        templates_loaded=len(template_store.templates()) if template_store is not None else 0,
    )
