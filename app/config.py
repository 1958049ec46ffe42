"""
Configuration module using Pydantic Settings for environment variable management.

Only operational knobs are exposed as environment variables. Rendering defaults
are hardcoded so that every job renders the same way on every host.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


TransitionType = Literal["fade", "none"]


class Settings(BaseSettings):
    """
    Application settings.

    Only essential configuration is loaded from environment variables.
    Rendering defaults are hardcoded for consistency.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES (minimal set)
    # ============================================================

    # Application
    app_name: str = "template-media-renderer"
    debug: bool = False
    log_level: str = "INFO"

    # Encoder (FFmpeg)
    ffmpeg_path: str = "ffmpeg"
    ffmpeg_timeout_seconds: float = 300.0
    ffmpeg_max_output_bytes: int = 50 * 1024 * 1024
    ffmpeg_preset: str = "veryfast"
    ffmpeg_crf: int = 20

    # Headless browser
    browser_navigation_timeout_ms: int = 30000

    # Audio download
    audio_download_timeout_seconds: float = 120.0

    # Performance tuning
    max_workers: int = 2  # Max concurrent video jobs
    max_slide_renders: int = 1  # Concurrent rasterizations within one job (1 = sequential)

    # Asset locations
    fonts_directory: Optional[str] = None  # Defaults to <project root>/fonts
    templates_directory: Optional[str] = None  # Directory of *.json template records

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    @property
    def max_concurrent_jobs(self) -> int:
        return self.max_workers

    @property
    def temp_directory(self) -> str:
        return "/tmp/template-media"

    @property
    def ffmpeg_probe_timeout_seconds(self) -> float:
        return 10.0

    # Image rendering defaults
    @property
    def default_image_width(self) -> int:
        return 1080

    @property
    def default_image_height(self) -> int:
        return 1080

    @property
    def default_scale(self) -> float:
        return 2.0

    # Video rendering defaults
    @property
    def default_video_width(self) -> int:
        return 1080

    @property
    def default_video_height(self) -> int:
        return 1920

    @property
    def default_fps(self) -> int:
        return 30

    @property
    def default_transition(self) -> TransitionType:
        return "fade"

    @property
    def default_transition_duration(self) -> float:
        return 0.5

    @property
    def default_audio_extension(self) -> str:
        return ".mp3"

    # Fonts
    @property
    def embedded_font_family(self) -> str:
        return "CustomFont"

    @property
    def font_candidates(self) -> list[tuple[str, str]]:
        """(regular, bold) file pairs, tried in order."""
        return [
            ("NotoSans-Regular.ttf", "NotoSans-Bold.ttf"),
            ("Inter-Regular.ttf", "Inter-Bold.ttf"),
        ]

    def get_fonts_dir(self) -> Path:
        """Resolve the bundled fonts directory (project root / fonts unless overridden)."""
        if self.fonts_directory:
            return Path(self.fonts_directory)
        # app/config.py -> project root
        return Path(__file__).parent.parent / "fonts"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
