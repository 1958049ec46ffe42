"""
Media Pipeline - orchestrates template substitution, rasterization and video composition.

Image flow:
    template/raw markup -> placeholder substitution -> FrameRenderer -> PNG bytes

Video flow:
    validate -> resolve all slides -> encoder probe -> workspace
    -> render slide-NNN.png (in order) -> audio -> VideoComposer -> MP4 bytes
    -> workspace removed (always)
"""

import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from app.config import TransitionType, get_settings
from app.services.audio_acquisition import AudioAcquisitionService
from app.services.frame_renderer import FrameRenderer
from app.services.job_workspace import frame_filename, job_workspace
from app.services.placeholder_engine import substitute
from app.services.template_store import Template, TemplateStore, resolve_field_values
from app.services.video_composer import (
    CompositionOptions,
    RenderedFrame,
    VideoComposer,
    select_strategy,
    validate_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class ImageRenderRequest:
    """A single rasterization: template + values, or raw markup."""

    template: Optional[str] = None
    values: dict[str, str] = field(default_factory=dict)
    html: Optional[str] = None
    css: Optional[str] = None
    width: Optional[int] = None  # Overrides the template's intrinsic size
    height: Optional[int] = None
    scale: Optional[float] = None


@dataclass
class SlideSpec:
    """One frame-producing unit of a video job."""

    duration: float
    template: Optional[str] = None
    values: dict[str, str] = field(default_factory=dict)
    html: Optional[str] = None
    css: Optional[str] = None


@dataclass
class VideoJob:
    """Ordered slides plus optional narration and encoding options."""

    slides: list[SlideSpec]
    audio_path: Optional[str] = None
    audio_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[int] = None
    transition: Optional[TransitionType] = None
    transition_duration: Optional[float] = None
    scale: Optional[float] = None
    job_id: Optional[str] = None


@dataclass
class ResolvedMarkup:
    """Final HTML/CSS ready for the renderer."""

    html: str
    css: str
    template: Optional[Template] = None


class MediaPipeline:
    """
    Template-to-media rendering pipeline.

    Either call fully succeeds or raises a single typed error; there is no
    partial result.
    """

    def __init__(
        self,
        template_store: TemplateStore,
        frame_renderer: FrameRenderer,
        video_composer: VideoComposer,
        audio_service: AudioAcquisitionService,
        max_slide_renders: Optional[int] = None,
        workspace_root: Optional[str] = None,
    ):
        self.settings = get_settings()
        self.template_store = template_store
        self.frame_renderer = frame_renderer
        self.video_composer = video_composer
        self.audio_service = audio_service
        self.max_slide_renders = max(1, max_slide_renders or self.settings.max_slide_renders)
        self.workspace_root = workspace_root or self.settings.temp_directory

    def resolve_markup(
        self,
        template_ref: Optional[str],
        values: Optional[dict[str, str]],
        html: Optional[str],
        css: Optional[str],
    ) -> ResolvedMarkup:
        """
        Produce final markup from a template reference or raw HTML/CSS.

        Raw markup is only run through substitution when values are supplied.

        Raises:
            TemplateNotFoundError: If the template reference does not resolve
            InvalidJobError: If neither a template nor raw HTML is given
        """
        if template_ref:
            template = self.template_store.get(template_ref)
            data = resolve_field_values(template, values)
            return ResolvedMarkup(
                html=substitute(template.html, data),
                css=substitute(template.css, data),
                template=template,
            )

        if html is None:
            raise InvalidJobError("Either a template or raw html is required")

        css = css or ""
        if values:
            return ResolvedMarkup(html=substitute(html, values), css=substitute(css, values))
        return ResolvedMarkup(html=html, css=css)

    async def render_image(self, request: ImageRenderRequest) -> bytes:
        """
        Render a single PNG.

        Explicit width/height win over the template's intrinsic size; raw
        markup falls back to the default image size.
        """
        markup = self.resolve_markup(request.template, request.values, request.html, request.css)

        if markup.template is not None:
            width = request.width or markup.template.width
            height = request.height or markup.template.height
        else:
            width = request.width or self.settings.default_image_width
            height = request.height or self.settings.default_image_height
        scale = request.scale or self.settings.default_scale

        logger.info(
            f"Rendering image: template={request.template or 'raw'}, {width}x{height}@{scale}x"
        )
        return await self.frame_renderer.render(markup.html, markup.css, width, height, scale)

    def _composition_options(self, job: VideoJob) -> CompositionOptions:
        return CompositionOptions(
            width=job.width or self.settings.default_video_width,
            height=job.height or self.settings.default_video_height,
            fps=job.fps or self.settings.default_fps,
            transition=job.transition or self.settings.default_transition,
            transition_duration=(
                job.transition_duration
                if job.transition_duration is not None
                else self.settings.default_transition_duration
            ),
        )

    def validate_job(self, job: VideoJob, options: CompositionOptions) -> None:
        """
        Reject malformed jobs before any resource is created.

        Raises:
            InvalidJobError: No slides, a non-positive duration, or a cross-fade
                that is not shorter than every slide
        """
        if not job.slides:
            raise InvalidJobError("At least one slide is required")

        for index, slide in enumerate(job.slides):
            if slide.duration is None or slide.duration <= 0:
                raise InvalidJobError(f"Slide {index + 1}: duration must be greater than 0")

        if select_strategy(len(job.slides), options) == "xfade":
            try:
                validate_transition([s.duration for s in job.slides], options.transition_duration)
            except ValueError as e:
                raise InvalidJobError(str(e)) from e

    async def _render_slides(
        self,
        job_id: str,
        slides: list[ResolvedMarkup],
        durations: list[float],
        work_dir: str,
        options: CompositionOptions,
        scale: float,
    ) -> list[RenderedFrame]:
        """Rasterize every slide into the workspace; result order follows slide order."""
        semaphore = asyncio.Semaphore(self.max_slide_renders)

        async def render_one(index: int) -> RenderedFrame:
            async with semaphore:
                markup = slides[index]
                png = await self.frame_renderer.render(
                    markup.html, markup.css, options.width, options.height, scale
                )
                path = os.path.join(work_dir, frame_filename(index))
                with open(path, "wb") as f:
                    f.write(png)
                logger.info(f"[{job_id}] Rendered slide {index + 1}/{len(slides)}")
                return RenderedFrame(path=path, duration=durations[index])

        if self.max_slide_renders == 1:
            return [await render_one(i) for i in range(len(slides))]
        return list(await asyncio.gather(*(render_one(i) for i in range(len(slides)))))

    async def render_video(self, job: VideoJob) -> bytes:
        """
        Render a video job to MP4 bytes.

        Raises:
            InvalidJobError, TemplateNotFoundError, EncoderNotFoundError,
            FrameRenderError, AudioDownloadError, VideoComposeError
        """
        job_id = job.job_id or uuid.uuid4().hex[:12]
        start_time = time.time()
        options = self._composition_options(job)
        scale = job.scale or self.settings.default_scale

        # Configuration errors surface before any temporary state exists
        self.validate_job(job, options)
        slides = [
            self.resolve_markup(s.template, s.values, s.html, s.css)
            for s in job.slides
        ]
        await self.video_composer.probe_encoder()

        logger.info(
            f"[{job_id}] Video job: {len(slides)} slides, {options.width}x{options.height}"
            f"@{options.fps}fps, transition={options.transition}"
        )

        with job_workspace(job_id, root=self.workspace_root) as work_dir:
            frames = await self._render_slides(
                job_id, slides, [s.duration for s in job.slides], work_dir, options, scale
            )

            audio_path = await self.audio_service.resolve(
                work_dir, audio_path=job.audio_path, audio_url=job.audio_url
            )

            output_path = os.path.join(work_dir, "output.mp4")
            await self.video_composer.compose(frames, output_path, options, audio_path=audio_path)

            with open(output_path, "rb") as f:
                video = f.read()

        logger.info(
            f"[{job_id}] Video job completed in {time.time() - start_time:.1f}s "
            f"({len(video) / 1024 / 1024:.1f} MB)"
        )
        return video


class InvalidJobError(Exception):
    """Exception raised for malformed render requests or video jobs."""
    pass
