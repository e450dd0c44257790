"""
Screenshot extraction around model-suggested timestamps.

For every planned screenshot we grab three frames, two seconds before, at,
and two seconds after the suggested moment, so the writer can pick the
cleanest one. A failed frame is skipped; a failed group is dropped. One bad
timestamp never fails the whole request.

The capture itself (ffmpeg) lives behind the FrameCapturer protocol in
infrastructure/video/processor.py. This module decides what to capture,
where to write it, and how to assemble the result.
"""

import asyncio
import logging
import math
import re
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ..errors import FrameCaptureError
from .models import CapturedImageGroup, ScreenshotSpec

logger = logging.getLogger(__name__)

OFFSETS: tuple[tuple[int, str], ...] = (
    (-2, "before"),
    (0, "current"),
    (2, "after"),
)

MIN_QUALITY = 2
MAX_QUALITY = 31

PUBLIC_IMAGE_PREFIX = "/images"

_PLAIN_SECONDS = re.compile(r"^\d+(\.\d+)?$")


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def parse_timestamp(value: object) -> int:
    """
    Convert a model-supplied timestamp to whole seconds.

    Accepts numbers, plain seconds ("90", "90.5"), "mm:ss" and "hh:mm:ss".
    Anything unparseable or negative becomes 0 with a warning.
    """
    if isinstance(value, bool):
        value = None

    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            logger.warning("Invalid screenshot timestamp", extra={"value": value})
            return 0
        return int(math.floor(value))

    if not isinstance(value, str) or not value.strip():
        logger.warning("Missing screenshot timestamp", extra={"value": repr(value)})
        return 0

    text = value.strip()
    if _PLAIN_SECONDS.match(text):
        return int(math.floor(float(text)))

    parts = [part.strip() for part in text.split(":")]
    if len(parts) in (2, 3):
        try:
            numbers = [float(part) for part in parts]
        except ValueError:
            numbers = []
        if numbers and all(math.isfinite(n) and n >= 0 for n in numbers):
            seconds = 0.0
            for number in numbers:
                seconds = seconds * 60 + number
            return int(math.floor(seconds))

    logger.warning("Unparseable screenshot timestamp", extra={"value": text})
    return 0


def format_timestamp(seconds: int) -> str:
    """Whole seconds to "mm:ss". Minutes are not wrapped into hours."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def clamp_quality(quality: int) -> int:
    """JPEG quality scale for ffmpeg: 2 is best, 31 is worst."""
    return max(MIN_QUALITY, min(MAX_QUALITY, int(quality)))


def screenshot_filename(video_id: str, index: int, label: str, seconds: int) -> str:
    stamp = format_timestamp(seconds).replace(":", "-")
    return f"{video_id}_screenshot_{index}_{label}_{stamp}.jpg"


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class FrameCapturer(Protocol):
    """Grabs a single JPEG frame. Raises FrameCaptureError on failure."""

    async def capture(
        self,
        video_path: Path,
        seconds: int,
        output_path: Path,
        quality: int,
    ) -> None:
        ...


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class FrameExtractionEngine:
    """
    Captures screenshot groups for a list of ScreenshotSpecs.

    Groups are captured by a pool of at most `concurrency` workers; with the
    default of 1 capture is strictly sequential. Results always come back in
    spec order.
    """

    def __init__(
        self,
        capturer: FrameCapturer,
        image_dir: Path,
        concurrency: int = 1,
        public_prefix: str = PUBLIC_IMAGE_PREFIX,
    ) -> None:
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")
        self._capturer = capturer
        self._image_dir = Path(image_dir)
        self._concurrency = concurrency
        self._public_prefix = public_prefix.rstrip("/")

    async def extract(
        self,
        video_id: str,
        video_path: Path,
        specs: Sequence[ScreenshotSpec],
        quality: int = MIN_QUALITY,
    ) -> list[CapturedImageGroup]:
        """Capture every spec and return the non-empty groups in spec order."""
        quality = clamp_quality(quality)
        self._image_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            "Capturing screenshots",
            extra={
                "video_id": video_id,
                "groups": len(specs),
                "quality": quality,
                "concurrency": self._concurrency,
            }
        )

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(index: int, spec: ScreenshotSpec) -> Optional[CapturedImageGroup]:
            async with semaphore:
                return await self._capture_group(video_id, video_path, index, spec, quality)

        results = await asyncio.gather(
            *(run(index, spec) for index, spec in enumerate(specs))
        )
        groups = [group for group in results if group is not None]

        logger.info(
            "Screenshot capture finished",
            extra={
                "video_id": video_id,
                "requested_groups": len(specs),
                "captured_groups": len(groups),
            }
        )
        return groups

    async def _capture_group(
        self,
        video_id: str,
        video_path: Path,
        index: int,
        spec: ScreenshotSpec,
        quality: int,
    ) -> Optional[CapturedImageGroup]:
        target = parse_timestamp(spec.timestamp)
        image_paths: list[str] = []

        for offset, label in OFFSETS:
            seconds = max(0, target + offset)
            filename = screenshot_filename(video_id, index, label, seconds)
            try:
                await self._capturer.capture(
                    video_path,
                    seconds,
                    self._image_dir / filename,
                    quality,
                )
            except FrameCaptureError as e:
                logger.warning(
                    "Frame capture failed",
                    extra={
                        "video_id": video_id,
                        "group": index,
                        "label": label,
                        "seconds": seconds,
                        "error": e.message,
                    }
                )
                continue
            image_paths.append(f"{self._public_prefix}/{filename}")

        if not image_paths:
            logger.warning(
                "Dropping screenshot group with no frames",
                extra={"video_id": video_id, "group": index, "timestamp": spec.timestamp}
            )
            return None

        return CapturedImageGroup(
            spec_index=index,
            timestamp=spec.timestamp,
            reason=spec.reason,
            target_seconds=target,
            image_paths=image_paths,
        )
