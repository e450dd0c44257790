"""
YouTube video acquisition with yt-dlp.

Downloads land in the local video cache as <video_id>.mp4. The requested
quality only picks a resolution ceiling: screenshot quality 2-10 is worth a
1080p source, anything coarser gets by with 720p. Every tier falls back to
the next so a download always produces something.

Success is judged by the output file, not by yt-dlp's verdict. yt-dlp can
report an error after the merge has already produced a usable file (a
post-processing warning, a flaky fragment retry), and a usable file is
what we need.
"""

import asyncio
import logging
from typing import Callable, Optional, Protocol

from ...core.content.models import LocalAsset, youtube_url
from ...core.errors import DownloadError, DownloaderUnavailableError, EmptyDownloadError
from ..storage.local import LocalAssetStore

logger = logging.getLogger(__name__)

HIGH_QUALITY_MAX = 10


def _tier(height: int) -> str:
    return (
        f"bestvideo[height<={height}][ext=mp4]+bestaudio[ext=m4a]"
        f"/bestvideo[height<={height}]+bestaudio"
        f"/best[height<={height}]"
    )


def format_selector_for_quality(quality: int) -> str:
    """
    yt-dlp format selector for a screenshot quality (2 best .. 31 worst).

    quality <= 10 tries 1080p then 720p; coarser qualities try 720p then 480p.
    """
    if quality <= HIGH_QUALITY_MAX:
        primary, fallback = 1080, 720
    else:
        primary, fallback = 720, 480
    return f"{_tier(primary)}/{_tier(fallback)}/best"


class _YDLLogger:
    """Route yt-dlp output into our logging instead of stdout."""

    def debug(self, msg):
        if msg.startswith("[download]"):
            return
        logger.debug("yt-dlp: %s", msg)

    def info(self, msg):
        logger.debug("yt-dlp: %s", msg)

    def warning(self, msg):
        logger.info("yt-dlp: %s", msg)

    def error(self, msg):
        logger.warning("yt-dlp: %s", msg)


_ydl_logger = _YDLLogger()


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class VideoDownloader(Protocol):
    """Downloads a YouTube video into the local cache."""

    async def download(self, video_id: str, quality: int) -> LocalAsset:
        ...


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

class YtDlpDownloader:
    """
    Downloader backed by the yt_dlp library.

    The download is blocking, so it runs in a worker thread.
    """

    def __init__(self, store: LocalAssetStore, retries: int = 5) -> None:
        try:
            import yt_dlp
            from yt_dlp.utils import DownloadError as YtDlpDownloadError
        except ImportError:
            raise DownloaderUnavailableError(
                "yt-dlp is required for video downloads. Install with: pip install yt-dlp"
            )

        self._yt_dlp = yt_dlp
        self._download_error = YtDlpDownloadError
        self._store = store
        self._retries = retries

    def _options(self, video_id: str, quality: int) -> dict:
        return {
            "format": format_selector_for_quality(quality),
            "outtmpl": self._store.output_template(video_id),
            "merge_output_format": "mp4",
            "retries": self._retries,
            "fragment_retries": self._retries,
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "logger": _ydl_logger,
        }

    def _download_blocking(self, video_id: str, quality: int) -> None:
        with self._yt_dlp.YoutubeDL(self._options(video_id, quality)) as ydl:
            ydl.download([youtube_url(video_id)])

    async def download(self, video_id: str, quality: int) -> LocalAsset:
        self._store.ensure_directory()

        logger.info(
            "Downloading video",
            extra={"video_id": video_id, "quality": quality}
        )

        try:
            await asyncio.to_thread(self._download_blocking, video_id, quality)
        except self._download_error as e:
            asset = self._store.get(video_id)
            if asset is None:
                raise DownloadError(
                    f"yt-dlp failed to download {video_id}",
                    details={"video_id": video_id, "error": str(e)},
                )
            logger.warning(
                "yt-dlp reported an error but the output file exists; using it",
                extra={"video_id": video_id, "error": str(e)}
            )
            return asset

        asset = self._store.get(video_id)
        if asset is None:
            raise EmptyDownloadError(
                f"Download finished but {self._store.path_for(video_id).name} was not created",
                details={"video_id": video_id},
            )

        logger.info(
            "Video downloaded",
            extra={"video_id": video_id, "size_mb": round(asset.size_mb, 2)}
        )
        return asset


class MockDownloader:
    """
    Writes a small placeholder file instead of downloading.

    Enough for the mock frame capturer and mock file store, which never look
    inside the video.
    """

    PLACEHOLDER = b"\x00\x00\x00\x18ftypmp42mock-video"

    def __init__(self, store: LocalAssetStore) -> None:
        self._store = store
        self.downloads: list[tuple[str, int]] = []
        logger.info("Initialized mock downloader")

    async def download(self, video_id: str, quality: int) -> LocalAsset:
        self._store.ensure_directory()
        path = self._store.path_for(video_id)
        path.write_bytes(self.PLACEHOLDER)
        self.downloads.append((video_id, quality))
        return LocalAsset.from_path(video_id, path)


def create_downloader(
    store: LocalAssetStore,
    mock_mode: bool = False,
    retries: int = 5,
) -> VideoDownloader:
    """Factory: real yt-dlp downloader, or the placeholder writer in mock mode."""
    if mock_mode:
        return MockDownloader(store)
    return YtDlpDownloader(store, retries=retries)


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------

class VideoAcquirer:
    """
    Cache-first access to local video copies.

    Concurrent requests for the same video share one download.
    """

    def __init__(self, store: LocalAssetStore, downloader: VideoDownloader) -> None:
        self._store = store
        self._downloader = downloader
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> LocalAssetStore:
        return self._store

    async def acquire(
        self,
        video_id: str,
        quality: int = 2,
        before_download: Optional[Callable[[], None]] = None,
    ) -> LocalAsset:
        """
        Return the cached copy, or download it.

        before_download runs only when a download is about to start, under
        the per-video lock. Whatever it raises aborts the download.
        """
        lock = self._locks.setdefault(video_id, asyncio.Lock())
        async with lock:
            asset = self._store.get(video_id)
            if asset is not None:
                logger.info(
                    "Using cached video",
                    extra={"video_id": video_id, "size_mb": round(asset.size_mb, 2)}
                )
                return asset
            if before_download is not None:
                before_download()
            return await self._downloader.download(video_id, quality)
