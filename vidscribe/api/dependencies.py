"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests with in-memory fakes
- Configuration is centralized

Several collaborators are shared across requests on purpose: the file
registry and the video acquirer hold per-video locks, which only work if
every request sees the same instance, the rate limiter holds counters,
and the task registry holds background work.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from ..config.settings import Settings, get_settings
from ..core.content.frames import FrameExtractionEngine
from ..core.content.orchestrator import ContentOrchestrator, DownloadGuard, GenerativeModelClient
from ..core.registry import FileRegistry
from ..core.tasks import TaskRegistry
from ..infrastructure.downloader.client import VideoAcquirer, create_downloader
from ..infrastructure.gemini.files import create_file_store
from ..infrastructure.gemini.model import create_model_client
from ..infrastructure.storage.local import LocalAssetStore
from ..infrastructure.video.processor import create_frame_capturer
from .rate_limit import DownloadRateLimiter

logger = logging.getLogger(__name__)

# Process-wide instances, created on first use
_file_registry: Optional[FileRegistry] = None
_model_client: Optional[GenerativeModelClient] = None
_video_acquirer: Optional[VideoAcquirer] = None
_frame_engine: Optional[FrameExtractionEngine] = None
_rate_limiter: Optional[DownloadRateLimiter] = None
_task_registry: Optional[TaskRegistry] = None


def reset_dependencies() -> None:
    """Drop shared instances. For tests that change settings between cases."""
    global _file_registry, _model_client, _video_acquirer, _frame_engine, _rate_limiter, _task_registry
    _file_registry = None
    _model_client = None
    _video_acquirer = None
    _frame_engine = None
    _rate_limiter = None
    _task_registry = None


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_asset_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> LocalAssetStore:
    """The local video cache. Stateless, so a fresh instance is fine."""
    return LocalAssetStore(settings.video_cache_dir)


def get_video_acquirer(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VideoAcquirer:
    """
    Provide the cache-first video acquirer.

    Shared so concurrent requests for the same video wait on one download
    instead of starting two.
    """
    global _video_acquirer

    if _video_acquirer is None:
        store = LocalAssetStore(settings.video_cache_dir)
        downloader = create_downloader(
            store,
            mock_mode=settings.downloader_mock_mode,
            retries=settings.download_retries,
        )
        _video_acquirer = VideoAcquirer(store, downloader)
        logger.info(
            "Created shared video acquirer",
            extra={"mock_mode": settings.downloader_mock_mode}
        )
    return _video_acquirer


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

def get_file_registry(
    settings: Annotated[Settings, Depends(get_settings)],
) -> FileRegistry:
    """
    Provide the remote file registry.

    In mock mode the in-memory store is shared as well, so files uploaded
    by one request are visible to the next.
    """
    global _file_registry

    if _file_registry is None:
        store = create_file_store(
            api_key=settings.gemini_api_key,
            mock_mode=settings.gemini_mock_mode,
        )
        _file_registry = FileRegistry(
            store,
            poll_interval_seconds=settings.poll_interval_seconds,
            max_poll_attempts=settings.poll_max_attempts,
            page_size=settings.file_list_page_size,
        )
        logger.info(
            "Created shared file registry",
            extra={"mock_mode": settings.gemini_mock_mode}
        )
    return _file_registry


def get_model_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> GenerativeModelClient:
    global _model_client

    if _model_client is None:
        _model_client = create_model_client(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            mock_mode=settings.gemini_mock_mode,
            max_attempts=settings.generation_max_attempts,
        )
    return _model_client


# ---------------------------------------------------------------------------
# Frame extraction
# ---------------------------------------------------------------------------

def get_frame_engine(
    settings: Annotated[Settings, Depends(get_settings)],
) -> FrameExtractionEngine:
    """
    Provide the screenshot engine.

    Created lazily so a server without FFmpeg can still serve metadata;
    only the capture endpoints fail with a configuration error.
    """
    global _frame_engine

    if _frame_engine is None:
        capturer = create_frame_capturer(
            mock_mode=settings.ffmpeg_mock_mode,
            ffmpeg_path=settings.ffmpeg_path,
            timeout_seconds=settings.capture_timeout_seconds,
        )
        _frame_engine = FrameExtractionEngine(
            capturer,
            image_dir=settings.image_cache_dir,
            concurrency=settings.capture_concurrency,
        )
    return _frame_engine


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def get_orchestrator(
    model: Annotated[GenerativeModelClient, Depends(get_model_client)],
    registry: Annotated[FileRegistry, Depends(get_file_registry)],
    acquirer: Annotated[VideoAcquirer, Depends(get_video_acquirer)],
) -> ContentOrchestrator:
    """
    Orchestrator for flows that never capture frames.

    The orchestrator itself is stateless, so a new one per request is cheap.
    """
    return ContentOrchestrator(model=model, registry=registry, asset_source=acquirer)


def get_capturing_orchestrator(
    model: Annotated[GenerativeModelClient, Depends(get_model_client)],
    registry: Annotated[FileRegistry, Depends(get_file_registry)],
    acquirer: Annotated[VideoAcquirer, Depends(get_video_acquirer)],
    frame_engine: Annotated[FrameExtractionEngine, Depends(get_frame_engine)],
) -> ContentOrchestrator:
    """Orchestrator with screenshot capture wired in."""
    return ContentOrchestrator(
        model=model,
        registry=registry,
        frame_engine=frame_engine,
        asset_source=acquirer,
    )


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

def get_rate_limiter(
    settings: Annotated[Settings, Depends(get_settings)],
) -> DownloadRateLimiter:
    global _rate_limiter

    if _rate_limiter is None:
        _rate_limiter = DownloadRateLimiter(
            max_per_key=settings.max_downloads_per_hour,
            max_per_ip=settings.max_downloads_per_hour_per_ip,
        )
    return _rate_limiter


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_download_guard(
    limiter: Annotated[DownloadRateLimiter, Depends(get_rate_limiter)],
    ip: Annotated[str, Depends(client_ip)],
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> DownloadGuard:
    """
    A callback that charges one download to this caller.

    Handed down to the acquirer, which only calls it on a cache miss, so
    cached videos and reused Gemini uploads are free. Raises
    RateLimitExceeded when the caller is out of downloads.
    """
    def charge_download() -> None:
        limiter.check(x_user_id, ip)

    return charge_download


# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------

def get_task_registry(
    settings: Annotated[Settings, Depends(get_settings)],
) -> TaskRegistry:
    global _task_registry

    if _task_registry is None:
        _task_registry = TaskRegistry(retention_seconds=settings.task_retention_minutes * 60)
    return _task_registry


async def shutdown_tasks() -> None:
    """Cancel background work still running. Called on application shutdown."""
    if _task_registry is not None:
        await _task_registry.shutdown()


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
AssetStoreDep = Annotated[LocalAssetStore, Depends(get_asset_store)]
VideoAcquirerDep = Annotated[VideoAcquirer, Depends(get_video_acquirer)]
FileRegistryDep = Annotated[FileRegistry, Depends(get_file_registry)]
OrchestratorDep = Annotated[ContentOrchestrator, Depends(get_orchestrator)]
CapturingOrchestratorDep = Annotated[ContentOrchestrator, Depends(get_capturing_orchestrator)]
DownloadGuardDep = Annotated[DownloadGuard, Depends(get_download_guard)]
TaskRegistryDep = Annotated[TaskRegistry, Depends(get_task_registry)]
