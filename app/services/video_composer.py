"""
Video Composer - FFmpeg-based assembly of rendered frames into an MP4.

Strategies:
- single: loop one still for its duration
- concat: concat demuxer over (frame, duration) pairs, hard cuts
- xfade:  chained cross-fades between adjacent frames
"""

import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

from app.config import TransitionType, get_settings

logger = logging.getLogger(__name__)


CompositionStrategy = Literal["single", "concat", "xfade"]


@dataclass
class RenderedFrame:
    """A rasterized slide on disk, paired with its display duration (seconds)."""

    path: str
    duration: float


@dataclass
class CompositionOptions:
    """Encoding options for one video job."""

    width: int = 1080
    height: int = 1920
    fps: int = 30
    transition: TransitionType = "fade"
    transition_duration: float = 0.5


@dataclass
class EncoderResult:
    """Captured outcome of one encoder invocation."""

    stdout: str
    stderr: str
    exit_code: int


def format_seconds(value: float) -> str:
    """Render seconds without float noise: 5.0 -> '5', 4.5 -> '4.5'."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"


def select_strategy(frame_count: int, options: CompositionOptions) -> CompositionStrategy:
    """Pick the composition strategy for a job."""
    if frame_count == 1:
        return "single"
    if options.transition == "none" or options.transition_duration <= 0:
        return "concat"
    return "xfade"


def validate_transition(durations: Sequence[float], transition_duration: float) -> None:
    """
    Reject a cross-fade that does not fit inside every slide.

    Raises:
        ValueError: If any slide is not strictly longer than the transition
    """
    for index, duration in enumerate(durations):
        if transition_duration >= duration:
            raise ValueError(
                f"Transition duration {format_seconds(transition_duration)}s must be shorter "
                f"than every slide (slide {index + 1} lasts {format_seconds(duration)}s)"
            )


def compute_xfade_offsets(durations: Sequence[float], transition_duration: float) -> list[float]:
    """
    Offsets (seconds) of each chained cross-fade.

    Transition i joins the accumulated stream of slides 0..i (whose length is
    sum(d[0..i]) - i*td) with slide i+1, starting td before that stream ends.

    Example: [5, 5, 5] with td=0.5 -> [4.5, 9.0]
    """
    validate_transition(durations, transition_duration)

    offsets = []
    cumulative = 0.0
    for i in range(len(durations) - 1):
        cumulative += durations[i]
        left_duration = cumulative - i * transition_duration
        offsets.append(round(left_duration - transition_duration, 6))
    return offsets


def expected_duration(durations: Sequence[float], options: CompositionOptions) -> float:
    """Visual length of the composed video before any audio truncation."""
    total = float(sum(durations))
    if select_strategy(len(durations), options) == "xfade":
        total -= (len(durations) - 1) * options.transition_duration
    return total


def _escape_concat_path(path: str) -> str:
    """Quote a path for the concat demuxer list file."""
    return "'" + path.replace("'", "'\\''") + "'"


def _truncate_tail(data: bytes, limit: int) -> str:
    if len(data) > limit:
        data = data[-limit:]
    return data.decode("utf-8", errors="replace")


class VideoComposer:
    """
    Service for composing rendered frames into a video using FFmpeg.

    All strategies end in a single FFmpeg invocation with a wall-clock timeout;
    captured output is bounded to `ffmpeg_max_output_bytes`.
    """

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or self.settings.ffmpeg_path

    async def probe_encoder(self) -> str:
        """
        Fast `ffmpeg -version` check, run before any frame is rendered.

        Returns:
            The encoder's version banner line

        Raises:
            EncoderNotFoundError: If FFmpeg is missing or not runnable
        """
        try:
            result = await self.run_encoder(
                ["-version"],
                timeout=self.settings.ffmpeg_probe_timeout_seconds,
            )
        except (EncoderNotFoundError, VideoComposeError) as e:
            raise EncoderNotFoundError(f"FFmpeg not available: {e}") from e

        if result.exit_code != 0:
            raise EncoderNotFoundError(
                f"FFmpeg not available: version probe exited with {result.exit_code}"
            )

        version_line = result.stdout.splitlines()[0] if result.stdout else "ffmpeg"
        logger.debug(f"Encoder available: {version_line}")
        return version_line

    async def compose(
        self,
        frames: Sequence[RenderedFrame],
        output_path: str,
        options: CompositionOptions,
        audio_path: Optional[str] = None,
    ) -> str:
        """
        Encode frames (and optional audio) into `output_path`.

        Args:
            frames: Rendered frames in slide order
            output_path: Destination MP4 inside the job workspace
            options: Target size, fps and transition settings
            audio_path: Optional narration track, muxed with -shortest

        Returns:
            output_path

        Raises:
            ValueError: If the transition does not fit the slides
            VideoComposeError: If FFmpeg fails or times out
        """
        if not frames:
            raise ValueError("At least one frame is required")

        strategy = select_strategy(len(frames), options)
        durations = [frame.duration for frame in frames]
        logger.info(
            f"Composing {len(frames)} frames with '{strategy}' strategy "
            f"({options.width}x{options.height}@{options.fps}fps, "
            f"~{format_seconds(expected_duration(durations, options))}s, "
            f"audio={'yes' if audio_path else 'no'})"
        )

        if strategy == "single":
            args = self.build_single_slide_args(frames[0], output_path, options, audio_path)
        elif strategy == "concat":
            concat_file = os.path.join(os.path.dirname(output_path), "concat.txt")
            self.write_concat_list(frames, concat_file)
            args = self.build_concat_args(
                concat_file, sum(durations), output_path, options, audio_path
            )
        else:
            args = self.build_xfade_args(frames, output_path, options, audio_path)

        result = await self.run_encoder(args)
        if result.exit_code != 0:
            logger.error(f"FFmpeg failed with exit code {result.exit_code}: {result.stderr[-500:]}")
            raise VideoComposeError(
                f"FFmpeg exited with code {result.exit_code}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

        if not os.path.isfile(output_path):
            raise VideoComposeError("FFmpeg reported success but no output file was created")

        file_size = os.path.getsize(output_path)
        logger.info(f"Video composed: {output_path} ({file_size / 1024 / 1024:.1f} MB)")
        return output_path

    # ------------------------------------------------------------------
    # Argument builders
    # ------------------------------------------------------------------

    def _video_encode_args(self, fps: int) -> list[str]:
        return [
            "-c:v", "libx264",
            "-preset", self.settings.ffmpeg_preset,
            "-crf", str(self.settings.ffmpeg_crf),
            "-pix_fmt", "yuv420p",
            "-r", str(fps),
        ]

    def _audio_encode_args(self) -> list[str]:
        return ["-c:a", "aac", "-b:a", "192k", "-shortest"]

    def _scale_filter(self, options: CompositionOptions) -> str:
        return f"scale={options.width}:{options.height},setsar=1,format=yuv420p"

    def build_single_slide_args(
        self,
        frame: RenderedFrame,
        output_path: str,
        options: CompositionOptions,
        audio_path: Optional[str] = None,
    ) -> list[str]:
        """Loop one still for its duration."""
        args = [
            "-y",
            "-loop", "1",
            "-t", format_seconds(frame.duration),
            "-i", frame.path,
        ]
        if audio_path:
            args.extend(["-i", audio_path])

        args.extend(["-vf", self._scale_filter(options)])
        args.extend(self._video_encode_args(options.fps))
        if audio_path:
            args.extend(["-map", "0:v", "-map", "1:a"])
            args.extend(self._audio_encode_args())
        args.extend(["-movflags", "+faststart", output_path])
        return args

    def write_concat_list(self, frames: Sequence[RenderedFrame], concat_file: str) -> str:
        """
        Write the concat demuxer list.

        The last entry is repeated without a duration so the final `duration`
        directive is applied; the repeat itself is cut off by the `-t` output
        limit in build_concat_args.
        """
        lines = []
        for frame in frames:
            lines.append(f"file {_escape_concat_path(frame.path)}")
            lines.append(f"duration {format_seconds(frame.duration)}")
        lines.append(f"file {_escape_concat_path(frames[-1].path)}")

        with open(concat_file, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return concat_file

    def build_concat_args(
        self,
        concat_file: str,
        total_duration: float,
        output_path: str,
        options: CompositionOptions,
        audio_path: Optional[str] = None,
    ) -> list[str]:
        """Sequential hard cuts via the concat demuxer, capped at the summed slide durations."""
        args = [
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", concat_file,
        ]
        if audio_path:
            args.extend(["-i", audio_path])

        args.extend(["-vf", self._scale_filter(options)])
        args.extend(self._video_encode_args(options.fps))
        if audio_path:
            args.extend(["-map", "0:v", "-map", "1:a"])
            args.extend(self._audio_encode_args())
        # Output option: the demuxer overshoots by the repeated last entry
        args.extend(["-t", format_seconds(total_duration)])
        args.extend(["-movflags", "+faststart", output_path])
        return args

    def build_xfade_filter(
        self,
        durations: Sequence[float],
        options: CompositionOptions,
    ) -> str:
        """
        Build the filter graph: normalize every input, then chain xfade filters.

        Output label of the last transition is [vout].
        """
        offsets = compute_xfade_offsets(durations, options.transition_duration)
        n = len(durations)

        parts = []
        for i in range(n):
            parts.append(
                f"[{i}:v]{self._scale_filter(options)},fps={options.fps}[s{i}]"
            )

        for i, offset in enumerate(offsets):
            left = "[s0]" if i == 0 else f"[v{i - 1}]"
            right = f"[s{i + 1}]"
            out = "[vout]" if i == n - 2 else f"[v{i}]"
            parts.append(
                f"{left}{right}xfade=transition={options.transition}"
                f":duration={format_seconds(options.transition_duration)}"
                f":offset={format_seconds(offset)}{out}"
            )

        return ";".join(parts)

    def build_xfade_args(
        self,
        frames: Sequence[RenderedFrame],
        output_path: str,
        options: CompositionOptions,
        audio_path: Optional[str] = None,
    ) -> list[str]:
        """Chained cross-fades between adjacent frames."""
        args = ["-y"]
        for frame in frames:
            args.extend([
                "-loop", "1",
                "-framerate", str(options.fps),
                "-t", format_seconds(frame.duration),
                "-i", frame.path,
            ])
        if audio_path:
            args.extend(["-i", audio_path])

        filter_complex = self.build_xfade_filter([f.duration for f in frames], options)
        args.extend(["-filter_complex", filter_complex, "-map", "[vout]"])
        if audio_path:
            args.extend(["-map", f"{len(frames)}:a"])
        args.extend(self._video_encode_args(options.fps))
        if audio_path:
            args.extend(self._audio_encode_args())
        args.extend(["-movflags", "+faststart", output_path])
        return args

    # ------------------------------------------------------------------
    # Process execution
    # ------------------------------------------------------------------

    def _run_sync(self, cmd: list[str], timeout: float) -> EncoderResult:
        try:
            completed = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except FileNotFoundError as e:
            raise EncoderNotFoundError(f"{self.ffmpeg_path} not found") from e
        except subprocess.TimeoutExpired as e:
            stderr = _truncate_tail(e.stderr or b"", self.settings.ffmpeg_max_output_bytes)
            raise VideoComposeError(
                f"FFmpeg timed out after {format_seconds(timeout)}s",
                stderr=stderr,
            ) from e

        limit = self.settings.ffmpeg_max_output_bytes
        return EncoderResult(
            stdout=_truncate_tail(completed.stdout or b"", limit),
            stderr=_truncate_tail(completed.stderr or b"", limit),
            exit_code=completed.returncode,
        )

    async def run_encoder(self, args: list[str], timeout: Optional[float] = None) -> EncoderResult:
        """Run FFmpeg with `args` and return its captured output."""
        cmd = [self.ffmpeg_path, "-hide_banner", *args]
        timeout = timeout if timeout is not None else self.settings.ffmpeg_timeout_seconds
        logger.debug(f"Running: {' '.join(cmd)}")

        # Use run_in_executor for Windows compatibility
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self._run_sync(cmd, timeout))


class EncoderNotFoundError(Exception):
    """Exception raised when the FFmpeg binary is missing."""
    pass


class VideoComposeError(Exception):
    """Exception raised when FFmpeg fails; carries the captured diagnostics."""

    def __init__(self, message: str, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(f"{message}\nstderr: {stderr}" if stderr else message)
        self.exit_code = exit_code
        self.stderr = stderr
