"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (are the external tools and config there?)

Readiness looks at what each pipeline stage needs: a Gemini key, yt-dlp,
ffmpeg, and writable cache directories. Mock modes count as ready.
"""

import importlib.util
import logging
import os
import shutil
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "gemini": settings.gemini_mock_mode,
                "downloader": settings.downloader_mock_mode,
                "ffmpeg": settings.ffmpeg_mock_mode,
            }
        }
    )


def _check(name: str, ok: bool, error: str, mock: bool = False) -> ReadinessCheck:
    if mock:
        return ReadinessCheck(name=name, status="ok", error="mock mode")
    if ok:
        return ReadinessCheck(name=name, status="ok")
    return ReadinessCheck(name=name, status="error", error=error)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(settings: SettingsDep, response: Response) -> ReadinessResponse:
    missing_fields = settings.validate_required_fields()

    checks = [
        _check(
            "configuration",
            not missing_fields,
            f"Missing required fields: {', '.join(missing_fields)}",
        ),
        _check(
            "yt-dlp",
            importlib.util.find_spec("yt_dlp") is not None,
            "yt-dlp is not installed",
            mock=settings.downloader_mock_mode,
        ),
        _check(
            "ffmpeg",
            shutil.which(settings.ffmpeg_path) is not None,
            f"{settings.ffmpeg_path} not found on PATH",
            mock=settings.ffmpeg_mock_mode,
        ),
    ]

    for directory in settings.cache_directories:
        writable = directory.is_dir() and os.access(directory, os.W_OK)
        checks.append(_check(
            f"directory:{directory}",
            writable,
            "missing or not writable",
        ))

    all_ok = all(c.status == "ok" for c in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
