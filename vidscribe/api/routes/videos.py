"""
Local video cache endpoints.

Downloading is rate limited per requester and per IP. Deleting is how a
client frees disk space before the retention sweep gets to it.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, status

from ..dependencies import AssetStoreDep, DownloadGuardDep, VideoAcquirerDep
from ..schemas import VIDEO_ID_REGEX, DeleteVideoResponse, DownloadResponse, VideoRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/download",
    response_model=DownloadResponse,
    summary="Download a video into the local cache",
    description="Fetch the video with yt-dlp unless it's already cached. Rate limited.",
)
async def download_video(
    request: VideoRequest,
    acquirer: VideoAcquirerDep,
    charge_download: DownloadGuardDep,
) -> DownloadResponse:
    cached = acquirer.store.get(request.video_id)
    asset = await acquirer.acquire(
        request.video_id,
        request.quality,
        before_download=charge_download,
    )

    logger.info(
        "Video available locally",
        extra={"video_id": request.video_id, "cached": cached is not None}
    )

    return DownloadResponse(
        video_id=asset.video_id,
        file_path=str(asset.file_path),
        size_bytes=asset.size_bytes,
        cached=cached is not None,
    )


@router.delete(
    "/{video_id}",
    response_model=DeleteVideoResponse,
    summary="Delete a cached video",
)
async def delete_video(
    video_id: Annotated[str, Path(pattern=VIDEO_ID_REGEX)],
    store: AssetStoreDep,
) -> DeleteVideoResponse:
    deleted = store.remove(video_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cached video for {video_id}",
        )
    return DeleteVideoResponse(video_id=video_id, deleted=True)
