"""
Screenshot capture endpoints.

Capture works from the local video cache and downloads the video first
when it isn't there, which counts against the download rate limit.
"""

import logging

from fastapi import APIRouter

from ..dependencies import CapturingOrchestratorDep, DownloadGuardDep
from ..schemas import (
    CaptureRequest,
    CaptureResponse,
    ImageGroup,
    ScreenshotItem,
    ScreenshotRegenerateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/capture",
    response_model=CaptureResponse,
    summary="Capture planned screenshots",
    description=(
        "Grabs frames 2 seconds before, at, and 2 seconds after each timestamp. "
        "Frames that fail are skipped; groups with no frames are left out."
    ),
)
async def capture_screenshots(
    request: CaptureRequest,
    orchestrator: CapturingOrchestratorDep,
    charge_download: DownloadGuardDep,
) -> CaptureResponse:
    specs = [item.to_spec() for item in request.screenshots]
    groups = await orchestrator.capture_screenshots(
        request.video_id,
        specs,
        request.quality,
        before_download=charge_download,
    )

    return CaptureResponse(
        video_id=request.video_id,
        screenshots=request.screenshots,
        image_groups=[ImageGroup.from_domain(g) for g in groups],
    )


@router.post(
    "/regenerate",
    response_model=CaptureResponse,
    summary="Ask the model for new screenshot timestamps and capture them",
    responses={
        404: {"description": "private=true but the video has no Gemini upload"},
        409: {"description": "private=true but the upload is not processed yet"},
    },
)
async def regenerate_screenshots(
    request: ScreenshotRegenerateRequest,
    orchestrator: CapturingOrchestratorDep,
    charge_download: DownloadGuardDep,
) -> CaptureResponse:
    article, groups = await orchestrator.regenerate_screenshots(
        request.video_id,
        request.title,
        request.instructions,
        request.quality,
        private=request.private,
        before_download=charge_download,
    )

    logger.info(
        "Screenshots regenerated",
        extra={
            "video_id": request.video_id,
            "planned": len(article.screenshots),
            "captured_groups": len(groups),
        }
    )

    return CaptureResponse(
        video_id=request.video_id,
        screenshots=[ScreenshotItem.from_spec(s) for s in article.screenshots],
        image_groups=[ImageGroup.from_domain(g) for g in groups],
    )
