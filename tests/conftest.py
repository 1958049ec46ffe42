"""
Pytest configuration and fixtures.
"""

import asyncio
import os
import sys
from typing import Callable, Optional

import pytest

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.services.audio_acquisition import AudioAcquisitionService  # noqa: E402
from app.services.frame_renderer import FrameRenderError  # noqa: E402
from app.services.media_pipeline import MediaPipeline  # noqa: E402
from app.services.template_store import create_template_store  # noqa: E402
from app.services.video_composer import (  # noqa: E402
    EncoderNotFoundError,
    EncoderResult,
    VideoComposer,
)

# Minimal PNG signature; the fakes never decode it
FAKE_PNG = b"\x89PNG\r\n\x1a\nfake-frame"
FAKE_MP4 = b"\x00\x00\x00\x18ftypmp42fake-video"


class FakeFrameRenderer:
    """Records render calls instead of launching a browser."""

    def __init__(
        self,
        fail_on_call: Optional[int] = None,
        delay_for: Optional[Callable[[str], float]] = None,
    ):
        self.calls: list[dict] = []
        self.completed: list[str] = []
        self.fail_on_call = fail_on_call
        self.delay_for = delay_for

    async def render(self, html, css, width, height, scale=2.0) -> bytes:
        self.calls.append(
            {"html": html, "css": css, "width": width, "height": height, "scale": scale}
        )
        call_number = len(self.calls)
        if self.delay_for is not None:
            await asyncio.sleep(self.delay_for(html))
        if self.fail_on_call is not None and call_number == self.fail_on_call:
            raise FrameRenderError("Render failed: navigation timeout")
        self.completed.append(html)
        return FAKE_PNG


class FakeEncoderComposer(VideoComposer):
    """
    VideoComposer whose FFmpeg invocation is simulated.

    Argument construction is real; the process run writes FAKE_MP4 to the
    output path (the last argument) and returns the configured exit code.
    """

    def __init__(self, missing: bool = False, exit_code: int = 0, stderr: str = ""):
        super().__init__(ffmpeg_path="ffmpeg")
        self.missing = missing
        self.exit_code = exit_code
        self.stderr = stderr
        self.invocations: list[list[str]] = []
        self.concat_lists: list[list[str]] = []

    async def run_encoder(self, args, timeout=None) -> EncoderResult:
        self.invocations.append(list(args))
        if self.missing:
            raise EncoderNotFoundError("ffmpeg not found")
        if args == ["-version"]:
            return EncoderResult(stdout="ffmpeg version 6.1 Copyright (c)", stderr="", exit_code=0)
        if "concat" in args:
            with open(args[args.index("-i") + 1], encoding="utf-8") as f:
                self.concat_lists.append(f.read().splitlines())
        if self.exit_code == 0:
            with open(args[-1], "wb") as f:
                f.write(FAKE_MP4)
        return EncoderResult(stdout="", stderr=self.stderr, exit_code=self.exit_code)

    @property
    def encode_invocations(self) -> list[list[str]]:
        return [args for args in self.invocations if args != ["-version"]]


@pytest.fixture
def template_store():
    """Store with the built-in templates."""
    return create_template_store()


@pytest.fixture
def fake_renderer():
    return FakeFrameRenderer()


@pytest.fixture
def fake_composer():
    return FakeEncoderComposer()


@pytest.fixture
def workspace_root(tmp_path):
    """Empty directory used as the root for job workspaces."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return str(root)


@pytest.fixture
def make_pipeline(template_store, workspace_root):
    """Factory building a MediaPipeline around fakes."""

    def _make(renderer=None, composer=None, audio_service=None, max_slide_renders=1):
        return MediaPipeline(
            template_store=template_store,
            frame_renderer=renderer or FakeFrameRenderer(),
            video_composer=composer or FakeEncoderComposer(),
            audio_service=audio_service or AudioAcquisitionService(),
            max_slide_renders=max_slide_renders,
            workspace_root=workspace_root,
        )

    return _make
