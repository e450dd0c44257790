"""
Article endpoints.

Articles come with a screenshot plan: 3-5 timestamps the model thinks are
worth illustrating. Capturing them needs a local copy of the video, so
from-url only plans them; the private flow can capture right away because
it downloads the video anyway.

from-url and private also come in an /async flavour that answers 202 with
a task id (see routes/tasks.py).
"""

import logging

from fastapi import APIRouter, status

from ...core.content.models import VideoSource
from ...core.content.orchestrator import ContentOrchestrator, DownloadGuard
from ...core.tasks import ProgressReporter, ignore_progress
from ..dependencies import CapturingOrchestratorDep, DownloadGuardDep, OrchestratorDep, TaskRegistryDep
from ..schemas import (
    ArticleRegenerateRequest,
    ArticleRequest,
    ArticleResponse,
    PrivateArticleRequest,
    TaskAccepted,
)
from .tasks import ASYNC_RESPONSES, submit_task

logger = logging.getLogger(__name__)

router = APIRouter()


async def _public_article(
    request: ArticleRequest,
    orchestrator: ContentOrchestrator,
    report: ProgressReporter = ignore_progress,
) -> ArticleResponse:
    report(40, "Gemini is writing the article")
    source = VideoSource.from_public_video(request.video_id)
    artifact = await orchestrator.generate_article(
        source,
        request.title,
        request.instructions,
        request.references.to_domain(),
    )
    return ArticleResponse.build(request.video_id, artifact)


async def _private_article(
    request: PrivateArticleRequest,
    orchestrator: ContentOrchestrator,
    charge_download: DownloadGuard,
    report: ProgressReporter = ignore_progress,
) -> ArticleResponse:
    report(10, "Preparing the video for Gemini")
    handle, asset = await orchestrator.prepare_private_video(
        request.video_id,
        request.quality,
        before_download=charge_download,
    )
    source = VideoSource.from_handle(handle, video_id=request.video_id)

    report(50, "Gemini is writing the article")
    artifact = await orchestrator.generate_article(
        source,
        request.title,
        request.instructions,
        request.references.to_domain(),
    )

    groups = []
    if request.capture_screenshots and artifact.screenshots:
        report(80, "Capturing screenshots")
        groups = await orchestrator.capture_screenshots(
            request.video_id,
            artifact.screenshots,
            request.quality,
            asset=asset,
            before_download=charge_download,
        )

    logger.info(
        "Article generated from upload",
        extra={
            "video_id": request.video_id,
            "remote_name": handle.name,
            "image_groups": len(groups),
        }
    )
    return ArticleResponse.build(request.video_id, artifact, groups, handle)


@router.post(
    "/from-url",
    response_model=ArticleResponse,
    summary="Generate an article for a public video",
    description="Screenshots are planned but not captured. Use /api/v1/screenshots/capture.",
)
async def article_from_url(
    request: ArticleRequest,
    orchestrator: OrchestratorDep,
) -> ArticleResponse:
    return await _public_article(request, orchestrator)


@router.post(
    "/from-url/async",
    response_model=TaskAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate an article for a public video in the background",
    responses=ASYNC_RESPONSES,
)
async def article_from_url_async(
    request: ArticleRequest,
    orchestrator: OrchestratorDep,
    tasks: TaskRegistryDep,
) -> TaskAccepted:
    async def work(report: ProgressReporter) -> dict:
        response = await _public_article(request, orchestrator, report)
        return response.model_dump(mode="json")

    return submit_task(tasks, "article-from-url", work)


@router.post(
    "",
    response_model=ArticleResponse,
    summary="Generate an article for a private or unlisted video",
    description="A download, for the upload or for the screenshots, counts against the rate limit.",
    responses={429: {"description": "The video had to be downloaded and the caller is out of downloads"}},
)
async def article_from_upload(
    request: PrivateArticleRequest,
    orchestrator: CapturingOrchestratorDep,
    charge_download: DownloadGuardDep,
) -> ArticleResponse:
    return await _private_article(request, orchestrator, charge_download)


@router.post(
    "/async",
    response_model=TaskAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate an article for a private or unlisted video in the background",
    responses=ASYNC_RESPONSES,
)
async def article_from_upload_async(
    request: PrivateArticleRequest,
    orchestrator: CapturingOrchestratorDep,
    charge_download: DownloadGuardDep,
    tasks: TaskRegistryDep,
) -> TaskAccepted:
    async def work(report: ProgressReporter) -> dict:
        response = await _private_article(request, orchestrator, charge_download, report)
        return response.model_dump(mode="json")

    return submit_task(tasks, "article-private", work)


@router.post(
    "/regenerate",
    response_model=ArticleResponse,
    summary="Generate an article again from an existing Gemini upload",
    responses={
        404: {"description": "The upload expired or was deleted; download the video again"},
        409: {"description": "The upload exists but is not processed yet"},
    },
)
async def regenerate_article(
    request: ArticleRegenerateRequest,
    orchestrator: OrchestratorDep,
) -> ArticleResponse:
    source = await orchestrator.source_for_existing(request.remote_name)
    artifact = await orchestrator.generate_article(
        source,
        request.title,
        request.instructions,
        request.references.to_domain(),
    )
    return ArticleResponse.build(source.video_id, artifact, handle=source.handle)
