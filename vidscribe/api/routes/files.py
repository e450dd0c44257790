"""
Gemini file endpoints.

- check: has this video already been uploaded (dedup lookup by video id)?
- videos: register a video file the client already has, keyed by its
  YouTube id. An existing upload for that id is reused.
- reference files: upload, list, inspect and delete the extra material
  (images, PDFs, notes) that can be attached to article generation.

Gemini file names look like "files/abc123". Path parameters accept either
the full name or just the id.
"""

import logging
import shutil
import uuid
from pathlib import Path as FilePath
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Path, UploadFile, status

from ...core.content.models import VIDEO_MIME_TYPE, FileState
from ..dependencies import FileRegistryDep, SettingsDep
from ..schemas import (
    VIDEO_ID_REGEX,
    DeleteFileResponse,
    FileCheckResponse,
    FileListResponse,
    RemoteFileInfo,
    VideoUploadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EXTENSION_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".md": "text/markdown",
}

ALLOWED_MIME_TYPES = set(EXTENSION_MIME_TYPES.values()) | {"image/jpg"}


def resolve_mime_type(content_type: Optional[str], filename: str) -> Optional[str]:
    """
    Pick the MIME type to register a reference file under.

    Browsers often send Markdown as application/octet-stream, so a known
    extension wins over a generic content type. Returns None if unsupported.
    """
    extension = FilePath(filename).suffix.lower()
    if content_type in ALLOWED_MIME_TYPES:
        return content_type
    return EXTENSION_MIME_TYPES.get(extension)


def stage_upload(file: UploadFile, staging_dir: FilePath, max_mb: int) -> FilePath:
    """
    Copy an incoming upload into the staging directory.

    The staged file is removed again if it is over max_mb. Otherwise the
    caller owns it.
    """
    filename = file.filename or "upload"
    staging_dir.mkdir(parents=True, exist_ok=True)
    staged_path = staging_dir / f"upload-{uuid.uuid4().hex}{FilePath(filename).suffix.lower()}"

    with staged_path.open("wb") as out:
        shutil.copyfileobj(file.file, out)

    if staged_path.stat().st_size > max_mb * 1024 * 1024:
        staged_path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum: {max_mb}MB",
        )
    return staged_path


def normalize_file_name(name: str) -> str:
    return name if name.startswith("files/") else f"files/{name}"


@router.get(
    "/check/{video_id}",
    response_model=FileCheckResponse,
    summary="Check whether a video is already uploaded to Gemini",
)
async def check_file(
    video_id: Annotated[str, Path(pattern=VIDEO_ID_REGEX)],
    registry: FileRegistryDep,
) -> FileCheckResponse:
    handle = await registry.find_by_display_name(video_id)

    if handle is None:
        return FileCheckResponse(exists=False)

    if handle.state is FileState.ACTIVE:
        return FileCheckResponse(exists=True, file=RemoteFileInfo.from_handle(handle))

    if handle.state is FileState.PROCESSING:
        return FileCheckResponse(
            exists=True,
            processing=True,
            file=RemoteFileInfo.from_handle(handle),
        )

    return FileCheckResponse(
        exists=False,
        reason=f"File exists but state is {handle.state.value}",
    )


@router.post(
    "",
    response_model=RemoteFileInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a reference file",
    description="Images, PDF, audio, plain text, CSV or Markdown.",
)
async def upload_reference_file(
    file: Annotated[UploadFile, File(description="Reference file")],
    registry: FileRegistryDep,
    settings: SettingsDep,
    display_name: Annotated[Optional[str], Form()] = None,
) -> RemoteFileInfo:
    filename = file.filename or "upload"
    mime_type = resolve_mime_type(file.content_type, filename)
    if mime_type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type: {file.content_type} ({FilePath(filename).suffix})",
        )

    staged_path = stage_upload(
        file,
        FilePath(settings.upload_staging_dir),
        settings.max_reference_upload_mb,
    )

    try:
        size_bytes = staged_path.stat().st_size
        logger.info(
            "Uploading reference file",
            extra={"upload_name": filename, "mime_type": mime_type, "size_bytes": size_bytes}
        )
        handle = await registry.upload_reference(
            staged_path,
            mime_type=mime_type,
            display_name=display_name or filename,
        )
    finally:
        staged_path.unlink(missing_ok=True)

    return RemoteFileInfo.from_handle(handle)


@router.post(
    "/videos",
    response_model=VideoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a video file the client already has",
    description=(
        "Uploads an .mp4 under its YouTube video id so later private requests "
        "reuse it. If Gemini already holds a copy for that id, the upload is "
        "discarded and the existing copy is returned."
    ),
)
async def upload_video_file(
    video_id: Annotated[str, Form(pattern=VIDEO_ID_REGEX)],
    file: Annotated[UploadFile, File(description="MP4 video")],
    registry: FileRegistryDep,
    settings: SettingsDep,
) -> VideoUploadResponse:
    filename = file.filename or "upload"
    if file.content_type != VIDEO_MIME_TYPE and FilePath(filename).suffix.lower() != ".mp4":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only MP4 videos are accepted, got {file.content_type} ({FilePath(filename).suffix})",
        )

    staged_path = stage_upload(
        file,
        FilePath(settings.upload_staging_dir),
        settings.max_video_upload_mb,
    )

    try:
        registration = await registry.register_or_reuse(
            video_id,
            staged_path,
            staged_for_upload=True,
        )
    finally:
        staged_path.unlink(missing_ok=True)

    logger.info(
        "Video file registered",
        extra={"video_id": video_id, "remote_name": registration.handle.name, "reused": registration.reused}
    )
    return VideoUploadResponse(
        reused=registration.reused,
        file=RemoteFileInfo.from_handle(registration.handle),
    )


@router.get(
    "",
    response_model=FileListResponse,
    summary="List files in Gemini",
)
async def list_files(registry: FileRegistryDep) -> FileListResponse:
    handles = await registry.list_files()
    return FileListResponse(files=[RemoteFileInfo.from_handle(h) for h in handles])


@router.get(
    "/{name:path}",
    response_model=RemoteFileInfo,
    summary="Get a Gemini file",
)
async def get_file(name: str, registry: FileRegistryDep) -> RemoteFileInfo:
    handle = await registry.get(normalize_file_name(name))
    if handle is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {name}",
        )
    return RemoteFileInfo.from_handle(handle)


@router.delete(
    "/{name:path}",
    response_model=DeleteFileResponse,
    summary="Delete a Gemini file",
)
async def delete_file(name: str, registry: FileRegistryDep) -> DeleteFileResponse:
    full_name = normalize_file_name(name)
    await registry.delete(full_name)
    return DeleteFileResponse(name=full_name, deleted=True)
