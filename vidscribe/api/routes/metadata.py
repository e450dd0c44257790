"""
SEO metadata endpoints.

Three ways to point the model at a video:
- from-url: public videos, which Gemini can watch straight from YouTube
- private: download, upload to Gemini (or reuse an earlier upload), wait
  until it's processed, then generate
- reanalyze: generate again against an upload the client already has

from-url and private also come in an /async flavour that answers 202 with
a task id (see routes/tasks.py).
"""

import logging

from fastapi import APIRouter, status

from ...core.content.models import VideoSource
from ...core.content.orchestrator import ContentOrchestrator, DownloadGuard
from ...core.tasks import ProgressReporter, ignore_progress
from ..dependencies import DownloadGuardDep, OrchestratorDep, TaskRegistryDep
from ..schemas import GenerationRequest, MetadataResponse, ReanalyzeRequest, TaskAccepted
from .tasks import ASYNC_RESPONSES, submit_task

logger = logging.getLogger(__name__)

router = APIRouter()


async def _public_metadata(
    request: GenerationRequest,
    orchestrator: ContentOrchestrator,
    report: ProgressReporter = ignore_progress,
) -> MetadataResponse:
    report(40, "Gemini is watching the video")
    source = VideoSource.from_public_video(request.video_id)
    artifact = await orchestrator.generate_metadata(source, request.title, request.instructions)
    return MetadataResponse.build(request.video_id, artifact)


async def _private_metadata(
    request: GenerationRequest,
    orchestrator: ContentOrchestrator,
    charge_download: DownloadGuard,
    report: ProgressReporter = ignore_progress,
) -> MetadataResponse:
    report(10, "Preparing the video for Gemini")
    handle, asset = await orchestrator.prepare_private_video(
        request.video_id,
        request.quality,
        before_download=charge_download,
    )

    logger.info(
        "Remote video ready for metadata",
        extra={
            "video_id": request.video_id,
            "remote_name": handle.name,
            "downloaded": asset is not None,
        }
    )

    report(60, "Gemini is watching the video")
    source = VideoSource.from_handle(handle, video_id=request.video_id)
    artifact = await orchestrator.generate_metadata(source, request.title, request.instructions)
    return MetadataResponse.build(request.video_id, artifact, handle)


@router.post(
    "/from-url",
    response_model=MetadataResponse,
    summary="Generate metadata for a public video",
)
async def metadata_from_url(
    request: GenerationRequest,
    orchestrator: OrchestratorDep,
) -> MetadataResponse:
    return await _public_metadata(request, orchestrator)


@router.post(
    "/from-url/async",
    response_model=TaskAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate metadata for a public video in the background",
    responses=ASYNC_RESPONSES,
)
async def metadata_from_url_async(
    request: GenerationRequest,
    orchestrator: OrchestratorDep,
    tasks: TaskRegistryDep,
) -> TaskAccepted:
    async def work(report: ProgressReporter) -> dict:
        response = await _public_metadata(request, orchestrator, report)
        return response.model_dump(mode="json")

    return submit_task(tasks, "metadata-from-url", work)


@router.post(
    "",
    response_model=MetadataResponse,
    summary="Generate metadata for a private or unlisted video",
    description=(
        "Uploads the video to Gemini unless an upload with the same video id "
        "already exists, waits until it's processed, then generates. "
        "A download counts against the rate limit."
    ),
    responses={429: {"description": "The video had to be downloaded and the caller is out of downloads"}},
)
async def metadata_from_upload(
    request: GenerationRequest,
    orchestrator: OrchestratorDep,
    charge_download: DownloadGuardDep,
) -> MetadataResponse:
    return await _private_metadata(request, orchestrator, charge_download)


@router.post(
    "/async",
    response_model=TaskAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate metadata for a private or unlisted video in the background",
    responses=ASYNC_RESPONSES,
)
async def metadata_from_upload_async(
    request: GenerationRequest,
    orchestrator: OrchestratorDep,
    charge_download: DownloadGuardDep,
    tasks: TaskRegistryDep,
) -> TaskAccepted:
    async def work(report: ProgressReporter) -> dict:
        response = await _private_metadata(request, orchestrator, charge_download, report)
        return response.model_dump(mode="json")

    return submit_task(tasks, "metadata-private", work)


@router.post(
    "/reanalyze",
    response_model=MetadataResponse,
    summary="Generate metadata again from an existing Gemini upload",
    responses={
        404: {"description": "The upload expired or was deleted; download the video again"},
        409: {"description": "The upload exists but is not processed yet"},
    },
)
async def reanalyze_metadata(
    request: ReanalyzeRequest,
    orchestrator: OrchestratorDep,
) -> MetadataResponse:
    source = await orchestrator.source_for_existing(request.remote_name)
    artifact = await orchestrator.generate_metadata(source, request.title, request.instructions)
    return MetadataResponse.build(source.video_id, artifact, source.handle)
