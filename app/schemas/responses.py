"""
Response schemas for the render API.

Image and video endpoints return raw bytes; these models cover the JSON
endpoints (health, templates, errors).
"""

from typing import Optional

from pydantic import BaseModel, Field


class TemplateFieldResponse(BaseModel):
    """A substitutable template field."""

    name: str
    type: str = Field(..., description="text, textarea or color")
    label: Optional[str] = None
    default: Optional[str] = None


class TemplateResponse(BaseModel):
    """Template metadata and markup."""

    id: str
    name: str
    width: int = Field(..., description="Intrinsic width in pixels")
    height: int = Field(..., description="Intrinsic height in pixels")
    fields: list[TemplateFieldResponse] = Field(default_factory=list)
    html: Optional[str] = None
    css: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body returned for failed renders."""

    detail: str = Field(..., description="Human-readable cause")
    error_type: str = Field(..., description="Failure family, e.g. template_not_found")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(..., description="Whether the service is ready to accept requests")
    encoder_available: bool = Field(..., description="Whether ffmpeg is on PATH")
    browser_connected: bool = Field(..., description="Whether the shared browser is running")
    templates_loaded: int = Field(..., description="Number of registered templates")
