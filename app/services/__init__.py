"""
Services for the template media renderer.

Includes:
- Placeholder substitution and the template store
- Rasterization (shared browser session, frame renderer)
- Video composition (audio acquisition, job workspace, FFmpeg composer)
- The pipeline that orchestrates them
"""

from app.services.audio_acquisition import AudioAcquisitionService
from app.services.browser_session import BrowserSessionManager
from app.services.frame_renderer import FrameRenderer
from app.services.media_pipeline import MediaPipeline
from app.services.template_store import TemplateStore
from app.services.video_composer import VideoComposer

__all__ = [
    "TemplateStore",
    "BrowserSessionManager",
    "FrameRenderer",
    "AudioAcquisitionService",
    "VideoComposer",
    "MediaPipeline",
]
