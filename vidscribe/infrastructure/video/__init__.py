"""
Video processing infrastructure.

Captures single JPEG frames with FFmpeg for the screenshot engine.
"""

from .processor import (
    FFmpegFrameCapturer,
    MockFrameCapturer,
    create_frame_capturer,
)

__all__ = [
    "FFmpegFrameCapturer",
    "MockFrameCapturer",
    "create_frame_capturer",
]
