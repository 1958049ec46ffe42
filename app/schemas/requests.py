"""
Request schemas for the render API.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class _MarkupSource(BaseModel):
    """Either a template reference with field values, or raw HTML/CSS."""

    template: Optional[str] = Field(None, description="Template id or name")
    data: dict[str, str] = Field(
        default_factory=dict,
        description="Field values; absent fields fall back to the template's defaults",
    )
    html: Optional[str] = Field(None, description="Raw body markup (instead of a template)")
    css: Optional[str] = Field(None, description="Raw stylesheet used with html")

    @model_validator(mode="after")
    def validate_source(self):
        """Exactly one of template / html must be provided."""
        if self.template and self.html is not None:
            raise ValueError("Provide either template or html, not both")
        if not self.template and self.html is None:
            raise ValueError("Either template or html is required")
        return self


class ImageRenderRequest(_MarkupSource):
    """Request body for POST /render/image."""

    width: Optional[int] = Field(None, ge=16, le=8192, description="Overrides the template width")
    height: Optional[int] = Field(None, ge=16, le=8192, description="Overrides the template height")
    scale: float = Field(2.0, gt=0, le=4, description="Device scale factor")

    class Config:
        json_schema_extra = {
            "example": {
                "template": "quote",
                "data": {"quote": "Ship small, ship often.", "author": "Anonymous"},
                "width": 1080,
                "height": 1080,
                "scale": 2,
            }
        }


class SlideInput(_MarkupSource):
    """One slide of a video job."""

    duration: float = Field(..., gt=0, le=600, description="Display duration in seconds")


class VideoRenderRequest(BaseModel):
    """Request body for POST /render/video."""

    slides: list[SlideInput] = Field(..., min_length=1, description="Slides in display order")
    audio_path: Optional[str] = Field(None, description="Local narration file (preferred over audio_url)")
    audio_url: Optional[str] = Field(None, description="Narration file to download")
    width: int = Field(1080, ge=16, le=4096)
    height: int = Field(1920, ge=16, le=4096)
    fps: int = Field(30, ge=1, le=120)
    transition: Literal["fade", "none"] = "fade"
    transition_duration: float = Field(0.5, ge=0, le=10)
    scale: float = Field(2.0, gt=0, le=4)

    @model_validator(mode="after")
    def validate_transition_fits(self):
        """A cross-fade must be shorter than every slide."""
        if self.transition == "fade" and self.transition_duration > 0 and len(self.slides) > 1:
            for index, slide in enumerate(self.slides):
                if self.transition_duration >= slide.duration:
                    raise ValueError(
                        f"transition_duration must be shorter than every slide duration "
                        f"(slide {index + 1} lasts {slide.duration}s)"
                    )
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "slides": [
                    {"template": "text", "data": {"title": "Hello", "body": "First slide"}, "duration": 4},
                    {"template": "quote", "data": {"quote": "Less is more", "author": "Mies"}, "duration": 5},
                ],
                "audio_url": "https://example.com/narration.mp3",
                "transition": "fade",
                "transition_duration": 0.5,
            }
        }
