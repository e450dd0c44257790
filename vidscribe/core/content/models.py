"""
Domain models for the video-to-content pipeline.

These models represent the core business concepts. They have no dependencies
on external frameworks, SDKs or the filesystem layout. This is intentional:
the pipeline should be expressible without knowing whether Gemini, yt-dlp
or an in-memory fake sits behind it.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

VIDEO_MIME_TYPE = "video/mp4"


def is_valid_video_id(video_id: object) -> bool:
    """YouTube ids are exactly 11 characters of [A-Za-z0-9_-]."""
    return isinstance(video_id, str) and bool(VIDEO_ID_PATTERN.fullmatch(video_id))


def youtube_url(video_id: str) -> str:
    return YOUTUBE_WATCH_URL.format(video_id=video_id)


class FileState(Enum):
    """Processing state of a file in the remote store."""
    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: object) -> "FileState":
        """Accept enum members, SDK enums (via .name) or plain strings."""
        if isinstance(value, cls):
            return value
        raw = getattr(value, "name", value)
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.STATE_UNSPECIFIED


@dataclass
class RemoteFileHandle:
    """
    A video (or reference file) registered with the remote file store.

    `display_name` is set to the video id on upload and is the dedup key.
    The remote side expires the file on its own schedule.
    """
    name: str
    uri: str
    display_name: str
    state: FileState = FileState.PROCESSING
    mime_type: str = VIDEO_MIME_TYPE
    size_bytes: int = 0
    create_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state is FileState.ACTIVE

    @property
    def is_processing(self) -> bool:
        return self.state is FileState.PROCESSING


@dataclass(frozen=True)
class LocalAsset:
    """
    A downloaded video on local disk.

    Frozen because an asset is a snapshot of a file at a point in time.
    The file's mtime is the source of truth for its age.
    """
    video_id: str
    file_path: Path
    mtime: float
    size_bytes: int

    @classmethod
    def from_path(cls, video_id: str, path: Path) -> "LocalAsset":
        stat = path.stat()
        return cls(
            video_id=video_id,
            file_path=path,
            mtime=stat.st_mtime,
            size_bytes=stat.st_size,
        )

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)


@dataclass(frozen=True)
class ScreenshotSpec:
    """A moment the model wants illustrated, plus why."""
    timestamp: str
    reason: str = ""

    def __post_init__(self) -> None:
        if not str(self.timestamp).strip():
            raise ValueError("Screenshot timestamp cannot be empty")


@dataclass
class CapturedImageGroup:
    """
    Frames captured around one ScreenshotSpec.

    Holds up to three public image paths (before/current/after) in offset
    order. Offsets that failed to capture are simply absent.
    """
    spec_index: int
    timestamp: str
    reason: str
    target_seconds: int
    image_paths: list[str] = field(default_factory=list)


@dataclass
class ContentArtifact:
    """A generated long-form article with planned screenshots."""
    title_a: str
    title_b: str
    title_c: str
    article_text: str
    seo_description: str
    screenshots: list[ScreenshotSpec] = field(default_factory=list)

    @property
    def titles(self) -> list[str]:
        return [self.title_a, self.title_b, self.title_c]


@dataclass
class MetadataArtifact:
    """Generated SEO metadata: three title variants, description, tags."""
    title_a: str
    title_b: str
    title_c: str
    description: str
    tags: list[str] = field(default_factory=list)

    @property
    def titles(self) -> list[str]:
        return [self.title_a, self.title_b, self.title_c]


@dataclass(frozen=True)
class ReferenceFile:
    """A caller-uploaded file already registered with the remote store."""
    uri: str
    mime_type: str
    display_name: str = ""

    @property
    def kind(self) -> str:
        """Short human label used in the prompt's reference manifest."""
        if self.mime_type.startswith("image/"):
            return "image"
        if self.mime_type == "application/pdf":
            return "PDF document"
        if self.display_name.lower().endswith(".md"):
            return "Markdown document"
        if self.mime_type.startswith("text/"):
            return "text file"
        if self.mime_type.startswith("audio/"):
            return "audio file"
        return "file"


@dataclass
class References:
    """Extra material supplied alongside the primary video."""
    uploaded_files: list[ReferenceFile] = field(default_factory=list)
    reference_videos: list[str] = field(default_factory=list)
    reference_urls: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.uploaded_files or self.reference_videos or self.reference_urls)


# ---------------------------------------------------------------------------
# Generation request parts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VideoPart:
    """The primary video. mime_type is None for plain YouTube URLs."""
    uri: str
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class FilePart:
    uri: str
    mime_type: str


@dataclass(frozen=True)
class TextPart:
    text: str


Part = Union[VideoPart, FilePart, TextPart]


@dataclass(frozen=True)
class VideoSource:
    """
    Where the model should watch the primary video from.

    Public videos are referenced by their YouTube URL. Private ones go
    through the remote file store and are referenced by handle URI.
    """
    video_id: str
    uri: str
    mime_type: Optional[str] = None
    handle: Optional[RemoteFileHandle] = None

    @classmethod
    def from_public_video(cls, video_id: str) -> "VideoSource":
        return cls(video_id=video_id, uri=youtube_url(video_id))

    @classmethod
    def from_handle(cls, handle: RemoteFileHandle, video_id: Optional[str] = None) -> "VideoSource":
        return cls(
            video_id=video_id or handle.display_name,
            uri=handle.uri,
            mime_type=VIDEO_MIME_TYPE,
            handle=handle,
        )

    @property
    def is_private(self) -> bool:
        return self.handle is not None

    def as_part(self) -> VideoPart:
        return VideoPart(uri=self.uri, mime_type=self.mime_type)
