"""
Single-frame capture using FFmpeg.

Implements the FrameCapturer protocol from core.content.frames. The engine
decides which frames to grab; this module just runs ffmpeg once per frame
and reports failure as FrameCaptureError.

-ss goes before -i so ffmpeg seeks by keyframe index instead of decoding
from the start of the file.
"""

import asyncio
import logging
import subprocess
from pathlib import Path

from ...core.content.frames import FrameCapturer, clamp_quality
from ...core.errors import FrameCaptureError, FrameCaptureUnavailableError

logger = logging.getLogger(__name__)


class FFmpegFrameCapturer:
    """
    Frame capturer using the ffmpeg binary.

    Checks the binary once at construction so a missing install fails the
    request up front with an install hint instead of failing every frame.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout_seconds: float = 30.0) -> None:
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout_seconds

        # verify ffmpeg is available
        try:
            result = subprocess.run(
                [self._ffmpeg, "-version"],
                capture_output=True,
                text=True,
                timeout=5
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            raise FrameCaptureUnavailableError(
                "FFmpeg not found. Install with: apt-get install ffmpeg (or brew install ffmpeg)",
                details={"ffmpeg_path": self._ffmpeg},
            )
        if result.returncode != 0:
            raise FrameCaptureUnavailableError(
                "FFmpeg not working properly",
                details={"ffmpeg_path": self._ffmpeg, "stderr": result.stderr[-500:]},
            )
        logger.info("FFmpeg frame capturer initialized")

    def build_command(self, video_path: Path, seconds: int, output_path: Path, quality: int) -> list[str]:
        return [
            self._ffmpeg,
            "-ss", str(seconds),
            "-i", str(video_path),
            "-vframes", "1",
            "-q:v", str(clamp_quality(quality)),
            str(output_path),
            "-y",
        ]

    async def capture(
        self,
        video_path: Path,
        seconds: int,
        output_path: Path,
        quality: int,
    ) -> None:
        cmd = self.build_command(video_path, seconds, output_path, quality)

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                timeout=self._timeout
            )
        except subprocess.TimeoutExpired:
            raise FrameCaptureError(
                f"ffmpeg timed out capturing frame at {seconds}s",
                details={"seconds": seconds},
            )
        except OSError as e:
            raise FrameCaptureError(
                f"Could not run ffmpeg: {e}",
                details={"seconds": seconds},
            )

        if result.returncode != 0 or not Path(output_path).exists():
            stderr = result.stderr.decode(errors="replace") if result.stderr else ""
            raise FrameCaptureError(
                f"ffmpeg failed to capture frame at {seconds}s",
                details={"seconds": seconds, "returncode": result.returncode, "stderr": stderr[-500:]},
            )


# tiny valid JPEG (1x1 pixel)
MINIMAL_JPEG = bytes([
    0xFF, 0xD8, 0xFF, 0xE0, 0x00, 0x10, 0x4A, 0x46, 0x49, 0x46, 0x00, 0x01,
    0x01, 0x00, 0x00, 0x01, 0x00, 0x01, 0x00, 0x00, 0xFF, 0xDB, 0x00, 0x43,
    0x00, 0x08, 0x06, 0x06, 0x07, 0x06, 0x05, 0x08, 0x07, 0x07, 0x07, 0x09,
    0x09, 0x08, 0x0A, 0x0C, 0x14, 0x0D, 0x0C, 0x0B, 0x0B, 0x0C, 0x19, 0x12,
    0x13, 0x0F, 0x14, 0x1D, 0x1A, 0x1F, 0x1E, 0x1D, 0x1A, 0x1C, 0x1C, 0x20,
    0x24, 0x2E, 0x27, 0x20, 0x22, 0x2C, 0x23, 0x1C, 0x1C, 0x28, 0x37, 0x29,
    0x2C, 0x30, 0x31, 0x34, 0x34, 0x34, 0x1F, 0x27, 0x39, 0x3D, 0x38, 0x32,
    0x3C, 0x2E, 0x33, 0x34, 0x32, 0xFF, 0xC0, 0x00, 0x0B, 0x08, 0x00, 0x01,
    0x00, 0x01, 0x01, 0x01, 0x11, 0x00, 0xFF, 0xC4, 0x00, 0x1F, 0x00, 0x00,
    0x01, 0x05, 0x01, 0x01, 0x01, 0x01, 0x01, 0x01, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0x00, 0x00, 0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08,
    0x09, 0x0A, 0x0B, 0xFF, 0xDA, 0x00, 0x08, 0x01, 0x01, 0x00, 0x00, 0x3F,
    0x00, 0x7F, 0xFF, 0xD9,
])


class MockFrameCapturer:
    """
    Writes a placeholder JPEG for every requested frame.

    Lets the capture endpoints run locally without FFmpeg. Records every
    call so tests can check which timestamps were requested.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[int, str]] = []
        logger.info("Initialized mock frame capturer")

    async def capture(
        self,
        video_path: Path,
        seconds: int,
        output_path: Path,
        quality: int,
    ) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(MINIMAL_JPEG)
        self.calls.append((seconds, output_path.name))


def create_frame_capturer(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    timeout_seconds: float = 30.0,
) -> FrameCapturer:
    """
    Factory function for the frame capturer.

    Args:
        mock_mode: If True, return mock capturer (no FFmpeg required)
        ffmpeg_path: Path to the ffmpeg binary
        timeout_seconds: Upper bound for one capture

    Returns:
        FrameCapturer implementation
    """
    if mock_mode:
        return MockFrameCapturer()

    return FFmpegFrameCapturer(ffmpeg_path=ffmpeg_path, timeout_seconds=timeout_seconds)
