"""
Render API endpoints - PNG images and MP4 videos from templates.
"""

import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from app.config import get_settings
from app.schemas.requests import ImageRenderRequest, VideoRenderRequest
from app.schemas.responses import ErrorResponse
from app.services.audio_acquisition import AudioDownloadError
from app.services.frame_renderer import FrameRenderError
from app.services.media_pipeline import (
    ImageRenderRequest as PipelineImageRequest,
    InvalidJobError,
    MediaPipeline,
    SlideSpec,
    VideoJob,
)
from app.services.template_store import TemplateNotFoundError
from app.services.video_composer import EncoderNotFoundError, VideoComposeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/render")


# Failure family -> (HTTP status, error_type)
ERROR_STATUS = {
    TemplateNotFoundError: (status.HTTP_404_NOT_FOUND, "template_not_found"),
    InvalidJobError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_job"),
    EncoderNotFoundError: (status.HTTP_503_SERVICE_UNAVAILABLE, "encoder_missing"),
    AudioDownloadError: (status.HTTP_502_BAD_GATEWAY, "download_failed"),
    FrameRenderError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "render_failed"),
    VideoComposeError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "encode_failed"),
}


def get_pipeline(request: Request) -> MediaPipeline:
    """Get the media pipeline from app state."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Render pipeline not initialized. Service not ready.",
        )
    return pipeline


def get_semaphore(request: Request) -> asyncio.Semaphore:
    """Get video job semaphore from app state."""
    semaphore = getattr(request.app.state, "job_semaphore", None)
    if semaphore is None:
        # Fallback: create a semaphore with default limit
        settings = get_settings()
        return asyncio.Semaphore(settings.max_concurrent_jobs)
    return semaphore


def error_response(error: Exception) -> JSONResponse:
    """Map a pipeline failure to a JSON error body carrying its cause."""
    status_code, error_type = status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"
    for error_class, mapping in ERROR_STATUS.items():
        if isinstance(error, error_class):
            status_code, error_type = mapping
            break
    body = ErrorResponse(detail=str(error), error_type=error_type)
    return JSONResponse(status_code=status_code, content=body.model_dump())


ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post(
    "/image",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}, **ERROR_RESPONSES},
)
async def render_image(body: ImageRenderRequest, request: Request) -> Response:
    """
    Render a template (or raw markup) to a PNG.

    Returns the raw image bytes; nothing is persisted.
    """
    pipeline = get_pipeline(request)
    try:
        png = await pipeline.render_image(
            PipelineImageRequest(
                template=body.template,
                values=body.data,
                html=body.html,
                css=body.css,
                width=body.width,
                height=body.height,
                scale=body.scale,
            )
        )
    except tuple(ERROR_STATUS) as e:
        logger.warning(f"Image render failed: {e}")
        return error_response(e)

    return Response(content=png, media_type="image/png")


@router.post(
    "/video",
    response_class=Response,
    responses={200: {"content": {"video/mp4": {}}}, **ERROR_RESPONSES},
)
async def render_video(body: VideoRenderRequest, request: Request) -> Response:
    """
    Render a slide sequence (with optional narration) to an MP4.

    Jobs are processed with concurrency control; extra jobs wait for a slot.
    The job either fully succeeds or fails with a single error.
    """
    pipeline = get_pipeline(request)
    semaphore = get_semaphore(request)
    job_id = uuid.uuid4().hex[:12]

    job = VideoJob(
        slides=[
            SlideSpec(
                duration=slide.duration,
                template=slide.template,
                values=slide.data,
                html=slide.html,
                css=slide.css,
            )
            for slide in body.slides
        ],
        audio_path=body.audio_path,
        audio_url=body.audio_url,
        width=body.width,
        height=body.height,
        fps=body.fps,
        transition=body.transition,
        transition_duration=body.transition_duration,
        scale=body.scale,
        job_id=job_id,
    )

    logger.info(f"[{job_id}] Video job queued ({len(job.slides)} slides)")
    try:
        async with semaphore:
            video = await pipeline.render_video(job)
    except tuple(ERROR_STATUS) as e:
        logger.error(f"[{job_id}] Video job failed: {e}")
        return error_response(e)

    return Response(
        content=video,
        media_type="video/mp4",
        headers={"X-Job-Id": job_id},
    )
