"""
FastAPI application entry point for the template media renderer.

The service turns stored templates into media:
1. Single images (placeholder substitution + headless Chromium rasterization)
2. Slide videos (rasterized frames + optional narration, composed with FFmpeg)
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.routers import health, render, templates
from app.services.audio_acquisition import AudioAcquisitionService
from app.services.browser_session import BrowserSessionManager
from app.services.frame_renderer import FrameRenderer
from app.services.media_pipeline import MediaPipeline
from app.services.template_store import create_template_store
from app.services.video_composer import VideoComposer

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Wires the pipeline on startup; closes the shared browser on shutdown.
    """
    settings = get_settings()
    logger.info("Starting template media renderer...")

    # Create temp directory
    os.makedirs(settings.temp_directory, exist_ok=True)
    logger.info(f"Temp directory: {settings.temp_directory}")

    # Limits how many video jobs can run simultaneously
    job_semaphore = asyncio.Semaphore(settings.max_concurrent_jobs)
    logger.info(f"Max concurrent jobs: {settings.max_concurrent_jobs}")

    template_store = create_template_store(settings.templates_directory)
    logger.info(f"Templates registered: {len(template_store.templates())}")

    # Browser launches lazily on the first render
    browser_manager = BrowserSessionManager()
    pipeline = MediaPipeline(
        template_store=template_store,
        frame_renderer=FrameRenderer(browser_manager),
        video_composer=VideoComposer(),
        audio_service=AudioAcquisitionService(),
    )

    # Store in app state for dependency injection
    app.state.template_store = template_store
    app.state.browser_manager = browser_manager
    app.state.pipeline = pipeline
    app.state.job_semaphore = job_semaphore

    # Verify external tools
    _verify_external_tools()

    logger.info("Renderer ready to accept requests.")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down template media renderer...")
    await browser_manager.shutdown()
    app.state.pipeline = None

    # Clean up temp directory
    if os.path.isdir(settings.temp_directory):
        try:
            shutil.rmtree(settings.temp_directory)
        except Exception as e:
            logger.warning(f"Failed to clean up temp directory: {e}")

    logger.info("Shutdown complete")


def _verify_external_tools():
    """Verify that required external tools are available."""
    settings = get_settings()
    tools = {
        settings.ffmpeg_path: "FFmpeg for video composition",
    }

    for tool, description in tools.items():
        if shutil.which(tool):
            logger.info(f"✓ {description} available")
        else:
            logger.warning(f"✗ {description} NOT FOUND - video jobs will fail")


# Create FastAPI application
app = FastAPI(
    title="Template Media Renderer",
    description="""
Template-to-media rendering service.

## Features

### Images (`/render/image`)
- `{{name}}` / `{{name|default}}` placeholder substitution
- Deterministic rasterization with headless Chromium
- Bundled fonts inlined for reproducible output

### Videos (`/render/video`)
- One frame per slide, rendered at the target resolution
- Hard cuts or chained cross-fades
- Optional narration from a local file or URL (shortest wins)
- FFmpeg H.264 output

### Templates (`/templates`)
- Read-only view of registered templates
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(templates.router, tags=["Templates"])
app.include_router(render.router, tags=["Render"])


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "service": "template-media-renderer",
        "version": "1.0.0",
        "status": "running",
        "features": {
            "image": "Placeholder substitution + headless Chromium",
            "video": "Slides + narration + FFmpeg cross-fades",
        },
        "docs": "/docs",
    }
