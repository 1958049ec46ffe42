"""
Integration tests for the media pipeline (browser and encoder faked).
"""

import asyncio
import os
import re

import httpx
import pytest

from app.services.audio_acquisition import AudioAcquisitionService, AudioDownloadError
from app.services.frame_renderer import FrameRenderError
from app.services.media_pipeline import (
    ImageRenderRequest,
    InvalidJobError,
    SlideSpec,
    VideoJob,
)
from app.services.template_store import TemplateNotFoundError
from app.services.video_composer import EncoderNotFoundError, VideoComposeError

from tests.conftest import FAKE_MP4, FAKE_PNG, FakeEncoderComposer, FakeFrameRenderer


def _slides(*durations):
    return [
        SlideSpec(duration=d, template="text", values={"title": f"Slide {i + 1}"})
        for i, d in enumerate(durations)
    ]


def _slide_number(html):
    return int(re.search(r"Slide (\d+)", html).group(1))


def _earlier_slides_slower(html):
    return 0.01 * (4 - _slide_number(html))


class TestRenderImage:
    """Tests for single-image rendering."""

    def test_template_uses_intrinsic_size(self, make_pipeline, fake_renderer):
        """Test template width/height apply when no override is given."""
        pipeline = make_pipeline(renderer=fake_renderer)
        png = asyncio.run(pipeline.render_image(
            ImageRenderRequest(template="quote", values={"quote": "Hi", "author": "Me"})
        ))
        assert png == FAKE_PNG
        call = fake_renderer.calls[0]
        assert (call["width"], call["height"], call["scale"]) == (1080, 1080, 2.0)
        assert "Hi" in call["html"] and "Me" in call["html"]
        assert "#6366f1" in call["css"]

    def test_explicit_size_wins(self, make_pipeline, fake_renderer):
        """Test explicit width/height override the template size."""
        pipeline = make_pipeline(renderer=fake_renderer)
        asyncio.run(pipeline.render_image(
            ImageRenderRequest(template="text", width=1200, height=628, scale=1)
        ))
        call = fake_renderer.calls[0]
        assert (call["width"], call["height"], call["scale"]) == (1200, 628, 1)

    def test_raw_markup_verbatim(self, make_pipeline, fake_renderer):
        """Test raw markup without values is rendered untouched."""
        pipeline = make_pipeline(renderer=fake_renderer)
        asyncio.run(pipeline.render_image(ImageRenderRequest(html="<p>{{keep}}</p>", css="p{}")))
        call = fake_renderer.calls[0]
        assert call["html"] == "<p>{{keep}}</p>"
        assert call["css"] == "p{}"

    def test_raw_markup_with_values(self, make_pipeline, fake_renderer):
        """Test raw markup is substituted when values are supplied."""
        pipeline = make_pipeline(renderer=fake_renderer)
        asyncio.run(pipeline.render_image(
            ImageRenderRequest(html="<p>{{name|anon}}</p>", values={"other": "x"})
        ))
        assert fake_renderer.calls[0]["html"] == "<p>anon</p>"

    def test_template_not_found_renders_nothing(self, make_pipeline, fake_renderer):
        """Test a missing template fails before rasterization."""
        pipeline = make_pipeline(renderer=fake_renderer)
        with pytest.raises(TemplateNotFoundError):
            asyncio.run(pipeline.render_image(ImageRenderRequest(template="missing")))
        assert fake_renderer.calls == []

    def test_requires_source(self, make_pipeline):
        with pytest.raises(InvalidJobError):
            asyncio.run(make_pipeline().render_image(ImageRenderRequest()))


class TestRenderVideo:
    """Tests for video jobs."""

    def test_success_returns_video_and_cleans_up(self, make_pipeline, fake_renderer, workspace_root):
        """Test a job returns MP4 bytes and leaves no workspace behind."""
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(renderer=fake_renderer, composer=composer)

        video = asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5, 5, 5))))

        assert video == FAKE_MP4
        assert os.listdir(workspace_root) == []
        assert len(fake_renderer.calls) == 3
        # Every frame renders at the job's target size, not the template's
        assert all((c["width"], c["height"]) == (1080, 1920) for c in fake_renderer.calls)

    def test_no_transition_uses_concat_list(self, make_pipeline):
        """Test transition=none encodes from a concat list in the workspace."""
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(composer=composer)
        asyncio.run(pipeline.render_video(VideoJob(slides=_slides(2, 3), transition="none")))

        args = composer.encode_invocations[0]
        concat_file = args[args.index("-i") + 1]
        assert os.path.basename(concat_file) == "concat.txt"
        assert "-filter_complex" not in args

    def test_xfade_offsets_used(self, make_pipeline):
        """Test the cross-fade graph for [5,5,5] uses offsets 4.5 and 9."""
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(composer=composer)
        asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5, 5, 5), transition_duration=0.5)))

        args = composer.encode_invocations[0]
        graph = args[args.index("-filter_complex") + 1]
        assert "offset=4.5[v0]" in graph
        assert "offset=9[vout]" in graph
        frame_inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
        assert [os.path.basename(p) for p in frame_inputs] == [
            "slide-001.png", "slide-002.png", "slide-003.png",
        ]

    def test_parallel_rendering_preserves_order(self, make_pipeline):
        """Test frames keep slide order in the concat list when later slides finish first."""
        renderer = FakeFrameRenderer(delay_for=_earlier_slides_slower)
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(renderer=renderer, composer=composer, max_slide_renders=3)
        asyncio.run(pipeline.render_video(VideoJob(slides=_slides(1, 2, 3.5), transition="none")))

        assert [_slide_number(html) for html in renderer.completed] == [3, 2, 1]
        lines = composer.concat_lists[0]
        files = [os.path.basename(line.split(" ", 1)[1].strip("'")) for line in lines[0::2]]
        assert files == ["slide-001.png", "slide-002.png", "slide-003.png", "slide-003.png"]
        assert lines[1::2] == ["duration 1", "duration 2", "duration 3.5"]

    def test_parallel_rendering_preserves_order_with_fades(self, make_pipeline):
        """Test cross-fade inputs follow slide order with their own durations."""
        renderer = FakeFrameRenderer(delay_for=_earlier_slides_slower)
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(renderer=renderer, composer=composer, max_slide_renders=3)
        asyncio.run(pipeline.render_video(VideoJob(slides=_slides(1, 2, 3.5))))

        assert [_slide_number(html) for html in renderer.completed] == [3, 2, 1]
        args = composer.encode_invocations[0]
        inputs = [
            (os.path.basename(args[i + 1]), args[i - 1])
            for i, a in enumerate(args) if a == "-i"
        ]
        assert inputs == [("slide-001.png", "1"), ("slide-002.png", "2"), ("slide-003.png", "3.5")]

    def test_encoder_missing_detected_before_rasterization(self, make_pipeline, fake_renderer, workspace_root):
        """Test a failing encoder probe aborts before any frame is rendered."""
        pipeline = make_pipeline(renderer=fake_renderer, composer=FakeEncoderComposer(missing=True))
        with pytest.raises(EncoderNotFoundError):
            asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5))))
        assert fake_renderer.calls == []
        assert os.listdir(workspace_root) == []

    def test_template_not_found_no_rasterization(self, make_pipeline, fake_renderer):
        """Test an unknown template fails before the probe or any render."""
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(renderer=fake_renderer, composer=composer)
        slides = _slides(5) + [SlideSpec(duration=5, template="does-not-exist")]
        with pytest.raises(TemplateNotFoundError):
            asyncio.run(pipeline.render_video(VideoJob(slides=slides)))
        assert fake_renderer.calls == []
        assert composer.invocations == []

    def test_no_slides(self, make_pipeline):
        with pytest.raises(InvalidJobError, match="At least one slide"):
            asyncio.run(make_pipeline().render_video(VideoJob(slides=[])))

    def test_non_positive_duration(self, make_pipeline):
        with pytest.raises(InvalidJobError, match="duration"):
            asyncio.run(make_pipeline().render_video(VideoJob(slides=_slides(5, 0))))

    def test_transition_longer_than_slide_rejected(self, make_pipeline, fake_renderer):
        """Test an oversized cross-fade is a configuration error, not clamped."""
        pipeline = make_pipeline(renderer=fake_renderer)
        with pytest.raises(InvalidJobError, match="shorter"):
            asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5, 1, 5), transition_duration=1.0)))
        assert fake_renderer.calls == []

    def test_long_transition_allowed_for_single_slide(self, make_pipeline):
        """Test the transition check only applies when cross-fades are built."""
        video = asyncio.run(make_pipeline().render_video(
            VideoJob(slides=_slides(0.5), transition_duration=2.0)
        ))
        assert video == FAKE_MP4

    def test_render_failure_cleans_up(self, make_pipeline, workspace_root):
        """Test a rasterization failure aborts the job and removes the workspace."""
        renderer = FakeFrameRenderer(fail_on_call=2)
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(renderer=renderer, composer=composer)
        with pytest.raises(FrameRenderError):
            asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5, 5, 5))))
        assert os.listdir(workspace_root) == []
        assert composer.encode_invocations == []

    def test_encoder_failure_cleans_up(self, make_pipeline, workspace_root):
        """Test a non-zero encoder exit surfaces with diagnostics and cleans up."""
        composer = FakeEncoderComposer(exit_code=1, stderr="Unknown encoder 'libx264'")
        pipeline = make_pipeline(composer=composer)
        with pytest.raises(VideoComposeError, match="libx264"):
            asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5))))
        assert os.listdir(workspace_root) == []

    def test_local_audio_passed_to_encoder(self, make_pipeline):
        """Test a local audio path is used as-is with shortest semantics."""
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(composer=composer)
        asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5), audio_path="/media/voice.mp3")))
        args = composer.encode_invocations[0]
        assert "/media/voice.mp3" in args
        assert "-shortest" in args

    def test_no_audio_no_audio_track(self, make_pipeline):
        """Test no audio input means no audio stream mapping."""
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(composer=composer)
        asyncio.run(pipeline.render_video(VideoJob(slides=_slides(5, 5))))
        args = composer.encode_invocations[0]
        assert "-c:a" not in args
        assert "-shortest" not in args

    def test_audio_url_downloaded_into_workspace(self, make_pipeline, workspace_root):
        """Test a remote narration track lands in the workspace with its extension."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"RIFFwave"))
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(composer=composer, audio_service=AudioAcquisitionService(transport=transport))

        asyncio.run(pipeline.render_video(
            VideoJob(slides=_slides(5), audio_url="https://cdn.example.com/voice/take1.wav")
        ))

        args = composer.encode_invocations[0]
        audio_inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i" and args[i + 1].endswith(".wav")]
        assert len(audio_inputs) == 1
        assert os.path.basename(audio_inputs[0]) == "audio.wav"
        assert os.listdir(workspace_root) == []

    def test_audio_download_failure_aborts(self, make_pipeline, workspace_root):
        """Test a non-success audio response fails the job without encoding."""
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        composer = FakeEncoderComposer()
        pipeline = make_pipeline(composer=composer, audio_service=AudioAcquisitionService(transport=transport))

        with pytest.raises(AudioDownloadError, match="404"):
            asyncio.run(pipeline.render_video(
                VideoJob(slides=_slides(5), audio_url="https://cdn.example.com/missing.mp3")
            ))
        assert composer.encode_invocations == []
        assert os.listdir(workspace_root) == []
