"""
Request/response models shared by the API routers.

Field names are snake_case. The camelCase names used by older clients
(videoId, geminiFileName, prompt, timestamp_seconds/time,
reason_for_screenshot/caption) are accepted on input.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field

from ..core.content.models import (
    CapturedImageGroup,
    ContentArtifact,
    MetadataArtifact,
    ReferenceFile,
    References,
    RemoteFileHandle,
    ScreenshotSpec,
)
from ..core.tasks import TaskRecord

VIDEO_ID_REGEX = r"^[A-Za-z0-9_-]{11}$"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class VideoRequest(BaseModel):
    """Anything that targets a single YouTube video."""
    video_id: str = Field(
        pattern=VIDEO_ID_REGEX,
        validation_alias=AliasChoices("video_id", "videoId"),
        description="11-character YouTube video id",
    )
    quality: int = Field(
        default=2,
        ge=2,
        le=31,
        description="Screenshot JPEG quality, 2 (best) to 31 (worst). Also picks the download resolution.",
    )


class GenerationRequest(VideoRequest):
    title: str = Field(
        default="",
        validation_alias=AliasChoices("title", "videoTitle"),
        description="Video title, used as context in the prompt",
    )
    instructions: str = Field(
        default="",
        validation_alias=AliasChoices("instructions", "prompt"),
        description="Extra instructions appended to the prompt",
    )


class ReferenceFileIn(BaseModel):
    """A reference file already uploaded through POST /api/v1/files."""
    uri: str
    mime_type: str = Field(validation_alias=AliasChoices("mime_type", "mimeType"))
    display_name: str = Field(default="", validation_alias=AliasChoices("display_name", "displayName"))


class ReferencesIn(BaseModel):
    uploaded_files: list[ReferenceFileIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("uploaded_files", "uploadedFiles"),
    )
    reference_videos: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("reference_videos", "referenceVideos"),
    )
    reference_urls: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("reference_urls", "referenceUrls"),
    )

    def to_domain(self) -> References:
        return References(
            uploaded_files=[
                ReferenceFile(uri=f.uri, mime_type=f.mime_type, display_name=f.display_name)
                for f in self.uploaded_files
            ],
            reference_videos=list(self.reference_videos),
            reference_urls=list(self.reference_urls),
        )


class ArticleRequest(GenerationRequest):
    references: ReferencesIn = Field(default_factory=ReferencesIn)


class PrivateArticleRequest(ArticleRequest):
    capture_screenshots: bool = Field(
        default=False,
        description="Capture the planned screenshots right away from the local copy",
    )


class ReanalyzeRequest(BaseModel):
    """Generate again against a file already registered with Gemini."""
    remote_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("remote_name", "geminiFileName"),
        description="Gemini file name, e.g. files/abc123",
    )
    title: str = Field(default="", validation_alias=AliasChoices("title", "videoTitle"))
    instructions: str = Field(default="", validation_alias=AliasChoices("instructions", "prompt"))


class ArticleRegenerateRequest(ReanalyzeRequest):
    references: ReferencesIn = Field(default_factory=ReferencesIn)


class ScreenshotItem(BaseModel):
    timestamp: str = Field(
        min_length=1,
        validation_alias=AliasChoices("timestamp", "timestamp_seconds", "time"),
        description="mm:ss, hh:mm:ss or plain seconds",
    )
    reason: str = Field(
        default="",
        validation_alias=AliasChoices("reason", "reason_for_screenshot", "caption"),
    )

    @classmethod
    def from_spec(cls, spec: ScreenshotSpec) -> "ScreenshotItem":
        return cls(timestamp=spec.timestamp, reason=spec.reason)

    def to_spec(self) -> ScreenshotSpec:
        return ScreenshotSpec(timestamp=self.timestamp, reason=self.reason)


class CaptureRequest(VideoRequest):
    screenshots: list[ScreenshotItem] = Field(min_length=1)


class ScreenshotRegenerateRequest(GenerationRequest):
    private: bool = Field(
        default=False,
        description="Use the video's existing Gemini upload instead of its public URL",
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class RemoteFileInfo(BaseModel):
    name: str
    uri: str
    display_name: str
    state: str
    mime_type: str
    size_bytes: int = 0
    create_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None

    @classmethod
    def from_handle(cls, handle: RemoteFileHandle) -> "RemoteFileInfo":
        return cls(
            name=handle.name,
            uri=handle.uri,
            display_name=handle.display_name,
            state=handle.state.value,
            mime_type=handle.mime_type,
            size_bytes=handle.size_bytes,
            create_time=handle.create_time,
            expiration_time=handle.expiration_time,
        )


class ImageGroup(BaseModel):
    """Up to three frames (before/current/after) around one screenshot."""
    timestamp: str
    reason: str
    target_seconds: int
    image_paths: list[str]

    @classmethod
    def from_domain(cls, group: CapturedImageGroup) -> "ImageGroup":
        return cls(
            timestamp=group.timestamp,
            reason=group.reason,
            target_seconds=group.target_seconds,
            image_paths=list(group.image_paths),
        )


class DownloadResponse(BaseModel):
    video_id: str
    file_path: str
    size_bytes: int
    cached: bool = Field(description="True when the video was already in the local cache")


class DeleteVideoResponse(BaseModel):
    video_id: str
    deleted: bool


class MetadataResponse(BaseModel):
    video_id: str
    title_a: str
    title_b: str
    title_c: str
    description: str
    tags: list[str]
    remote_file: Optional[RemoteFileInfo] = None

    @classmethod
    def build(
        cls,
        video_id: str,
        artifact: MetadataArtifact,
        handle: Optional[RemoteFileHandle] = None,
    ) -> "MetadataResponse":
        return cls(
            video_id=video_id,
            title_a=artifact.title_a,
            title_b=artifact.title_b,
            title_c=artifact.title_c,
            description=artifact.description,
            tags=list(artifact.tags),
            remote_file=RemoteFileInfo.from_handle(handle) if handle else None,
        )


class ArticleResponse(BaseModel):
    video_id: str
    title_a: str
    title_b: str
    title_c: str
    article_text: str
    seo_description: str
    screenshots: list[ScreenshotItem]
    image_groups: list[ImageGroup] = Field(default_factory=list)
    remote_file: Optional[RemoteFileInfo] = None

    @classmethod
    def build(
        cls,
        video_id: str,
        artifact: ContentArtifact,
        groups: Optional[list[CapturedImageGroup]] = None,
        handle: Optional[RemoteFileHandle] = None,
    ) -> "ArticleResponse":
        return cls(
            video_id=video_id,
            title_a=artifact.title_a,
            title_b=artifact.title_b,
            title_c=artifact.title_c,
            article_text=artifact.article_text,
            seo_description=artifact.seo_description,
            screenshots=[ScreenshotItem.from_spec(s) for s in artifact.screenshots],
            image_groups=[ImageGroup.from_domain(g) for g in groups or []],
            remote_file=RemoteFileInfo.from_handle(handle) if handle else None,
        )


class CaptureResponse(BaseModel):
    video_id: str
    screenshots: list[ScreenshotItem]
    image_groups: list[ImageGroup]


class FileCheckResponse(BaseModel):
    exists: bool
    processing: bool = False
    reason: Optional[str] = None
    file: Optional[RemoteFileInfo] = None


class FileListResponse(BaseModel):
    files: list[RemoteFileInfo]


class DeleteFileResponse(BaseModel):
    name: str
    deleted: bool


class TaskAccepted(BaseModel):
    """Returned by the async endpoints. Poll status_url until finished."""
    task_id: str
    status: str
    status_url: str


class TaskStatusResponse(BaseModel):
    id: str
    type: str
    status: str
    progress: int
    progress_message: str
    result: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: TaskRecord) -> "TaskStatusResponse":
        return cls(
            id=record.id,
            type=record.type,
            status=record.status.value,
            progress=record.progress,
            progress_message=record.progress_message,
            result=record.result,
            error=record.error,
            created_at=datetime.fromtimestamp(record.created_at, tz=timezone.utc),
            updated_at=datetime.fromtimestamp(record.updated_at, tz=timezone.utc),
            completed_at=(
                datetime.fromtimestamp(record.completed_at, tz=timezone.utc)
                if record.completed_at is not None else None
            ),
        )


class VideoUploadResponse(BaseModel):
    reused: bool = Field(description="True when Gemini already had a copy and the upload was discarded")
    file: RemoteFileInfo
