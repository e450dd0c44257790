"""
YouTube video acquisition via yt-dlp, with a mock mode for local development.
"""

from .client import (
    MockDownloader,
    VideoAcquirer,
    VideoDownloader,
    YtDlpDownloader,
    create_downloader,
    format_selector_for_quality,
)

__all__ = [
    "MockDownloader",
    "VideoAcquirer",
    "VideoDownloader",
    "YtDlpDownloader",
    "create_downloader",
    "format_selector_for_quality",
]
