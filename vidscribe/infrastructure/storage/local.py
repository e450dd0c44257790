"""
Local video cache.

Downloaded videos are kept on disk as <video_id>.mp4 so screenshots can be
captured again (regenerate, different quality) without another download.
Files are only removed by the retention janitor or the explicit cleanup
endpoint, never after use.
"""

import logging
from pathlib import Path
from typing import Optional

from ...core.content.models import LocalAsset

logger = logging.getLogger(__name__)

VIDEO_EXTENSION = ".mp4"


class LocalAssetStore:
    """Filesystem layout for cached videos. One file per video id."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def ensure_directory(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, video_id: str) -> Path:
        return self._directory / f"{video_id}{VIDEO_EXTENSION}"

    def output_template(self, video_id: str) -> str:
        """yt-dlp output template; the extension is filled in by the downloader."""
        return str(self._directory / f"{video_id}.%(ext)s")

    def get(self, video_id: str) -> Optional[LocalAsset]:
        path = self.path_for(video_id)
        if not path.is_file():
            return None
        return LocalAsset.from_path(video_id, path)

    def remove(self, video_id: str) -> bool:
        """Delete the cached video. Returns False if there was nothing to delete."""
        path = self.path_for(video_id)
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Removed cached video", extra={"video_id": video_id, "path": str(path)})
        return True
