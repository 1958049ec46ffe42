"""
Pydantic schemas for request/response models.
"""

from app.schemas.requests import ImageRenderRequest, SlideInput, VideoRenderRequest
from app.schemas.responses import (
    ErrorResponse,
    HealthResponse,
    ReadinessResponse,
    TemplateFieldResponse,
    TemplateResponse,
)

__all__ = [
    "ImageRenderRequest",
    "SlideInput",
    "VideoRenderRequest",
    "ErrorResponse",
    "HealthResponse",
    "ReadinessResponse",
    "TemplateFieldResponse",
    "TemplateResponse",
]
