"""
Content orchestration: video in, metadata or article out.

The orchestrator assembles multi-part generation requests (video first,
then reference material, then the prompt), calls the generative model,
and turns its JSON answer into domain artifacts. It also drives the
private-video path (acquire, register, wait for ACTIVE) and the
regenerate-and-capture flow.

It doesn't know about HTTP, Gemini or yt-dlp. Those sit behind protocols.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Sequence

from ..errors import (
    ConfigurationError,
    RemoteFileNotFoundError,
    RemoteFileNotReadyError,
    ResponseParseError,
)
from .frames import FrameExtractionEngine
from .models import (
    CapturedImageGroup,
    ContentArtifact,
    FilePart,
    LocalAsset,
    MetadataArtifact,
    Part,
    References,
    RemoteFileHandle,
    ScreenshotSpec,
    TextPart,
    VideoPart,
    VideoSource,
)
from .prompts import build_article_prompt, build_metadata_prompt

if TYPE_CHECKING:
    from ..registry import FileRegistry

logger = logging.getLogger(__name__)

ARTICLE_REQUIRED_FIELDS = (
    "titleA",
    "titleB",
    "titleC",
    "article_text",
    "seo_description",
    "screenshots",
)

METADATA_REQUIRED_FIELDS = (
    "titleA",
    "titleB",
    "titleC",
    "description",
    "tags",
)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class GenerativeModelClient(Protocol):
    """
    Interface for a multimodal generative model.

    The orchestrator only needs one call: take ordered parts, return the
    model's text. Retrying overloads is the client's job.
    """

    async def generate(self, parts: Sequence[Part], response_format: str = "json") -> str:
        ...


# Called right before a download starts; raising aborts it.
DownloadGuard = Callable[[], None]


class LocalAssetSource(Protocol):
    """Something that can produce a local copy of a YouTube video."""

    async def acquire(
        self,
        video_id: str,
        quality: int,
        before_download: Optional[DownloadGuard] = None,
    ) -> LocalAsset:
        ...


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def extract_json_object(raw_text: str) -> dict[str, Any]:
    """
    Parse the model's answer as a JSON object.

    Models sometimes wrap the object in prose or ```json fences even when
    asked not to. If the whole text doesn't parse, the outermost {...} is
    tried before giving up.
    """
    text = (raw_text or "").strip()
    if not text:
        raise ResponseParseError("Model returned an empty response", raw_text=raw_text or "")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ResponseParseError("Model response contains no JSON object", raw_text=raw_text)
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Model response is not valid JSON: {e.msg}", raw_text=raw_text)

    if not isinstance(data, dict):
        raise ResponseParseError("Model response is not a JSON object", raw_text=raw_text)
    return data


def _require_fields(data: dict[str, Any], fields: Sequence[str], raw_text: str) -> None:
    missing = [
        name for name in fields
        if data.get(name) is None or (isinstance(data.get(name), str) and not data[name].strip())
    ]
    if missing:
        raise ResponseParseError(
            f"Model response is missing required fields: {', '.join(missing)}",
            raw_text=raw_text,
        )


def _parse_screenshots(items: Any, raw_text: str) -> list[ScreenshotSpec]:
    if not isinstance(items, list):
        raise ResponseParseError("'screenshots' must be a list", raw_text=raw_text)

    specs: list[ScreenshotSpec] = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ResponseParseError(
                f"Screenshot {position} is not an object", raw_text=raw_text
            )
        timestamp = item.get("timestamp_seconds")
        if timestamp is None or timestamp == "":
            timestamp = item.get("time")
        if timestamp is None or str(timestamp).strip() == "":
            raise ResponseParseError(
                f"Screenshot {position} has no timestamp", raw_text=raw_text
            )
        reason = item.get("reason_for_screenshot") or item.get("caption") or ""
        specs.append(ScreenshotSpec(timestamp=str(timestamp).strip(), reason=str(reason)))
    return specs


def _parse_tags(value: Any, raw_text: str) -> list[str]:
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, list):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    raise ResponseParseError("'tags' must be a list of strings", raw_text=raw_text)


def parse_article_response(raw_text: str) -> ContentArtifact:
    """All-or-nothing: a response missing any article field is rejected."""
    data = extract_json_object(raw_text)
    _require_fields(data, ARTICLE_REQUIRED_FIELDS, raw_text)
    return ContentArtifact(
        title_a=str(data["titleA"]),
        title_b=str(data["titleB"]),
        title_c=str(data["titleC"]),
        article_text=str(data["article_text"]),
        seo_description=str(data["seo_description"]),
        screenshots=_parse_screenshots(data["screenshots"], raw_text),
    )


def parse_metadata_response(raw_text: str) -> MetadataArtifact:
    data = extract_json_object(raw_text)
    _require_fields(data, METADATA_REQUIRED_FIELDS, raw_text)
    return MetadataArtifact(
        title_a=str(data["titleA"]),
        title_b=str(data["titleB"]),
        title_c=str(data["titleC"]),
        description=str(data["description"]),
        tags=_parse_tags(data["tags"], raw_text),
    )


def build_parts(
    source: VideoSource,
    prompt: str,
    references: Optional[References] = None,
) -> list[Part]:
    """
    Order matters: the primary video goes first, then uploaded reference
    files, then reference videos, and the prompt text last.
    """
    references = references or References()
    parts: list[Part] = [source.as_part()]
    parts.extend(FilePart(uri=ref.uri, mime_type=ref.mime_type) for ref in references.uploaded_files)
    parts.extend(VideoPart(uri=url) for url in references.reference_videos)
    parts.append(TextPart(text=prompt))
    return parts


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ContentOrchestrator:
    """
    Runs the generation flows.

    frame_engine and asset_source are optional so metadata-only deployments
    don't need ffmpeg or yt-dlp. Flows that need them fail with a clear
    error when they're missing.
    """

    def __init__(
        self,
        model: GenerativeModelClient,
        registry: "FileRegistry",
        frame_engine: Optional[FrameExtractionEngine] = None,
        asset_source: Optional[LocalAssetSource] = None,
    ) -> None:
        self._model = model
        self._registry = registry
        self._frame_engine = frame_engine
        self._asset_source = asset_source

    # -- generation -------------------------------------------------------

    async def generate_metadata(
        self,
        source: VideoSource,
        title: str,
        instructions: str = "",
    ) -> MetadataArtifact:
        prompt = build_metadata_prompt(title, instructions)
        parts = build_parts(source, prompt)

        logger.info(
            "Generating metadata",
            extra={"video_id": source.video_id, "private": source.is_private}
        )
        raw = await self._model.generate(parts)
        try:
            return parse_metadata_response(raw)
        except ResponseParseError:
            logger.warning("Unusable metadata response", extra={"video_id": source.video_id})
            raise

    async def generate_article(
        self,
        source: VideoSource,
        title: str,
        instructions: str = "",
        references: Optional[References] = None,
    ) -> ContentArtifact:
        references = references or References()
        prompt = build_article_prompt(title, instructions, references)
        parts = build_parts(source, prompt, references)

        logger.info(
            "Generating article",
            extra={
                "video_id": source.video_id,
                "private": source.is_private,
                "reference_files": len(references.uploaded_files),
                "reference_videos": len(references.reference_videos),
                "reference_urls": len(references.reference_urls),
            }
        )
        raw = await self._model.generate(parts)
        try:
            artifact = parse_article_response(raw)
        except ResponseParseError:
            logger.warning("Unusable article response", extra={"video_id": source.video_id})
            raise

        logger.info(
            "Article generated",
            extra={"video_id": source.video_id, "screenshots": len(artifact.screenshots)}
        )
        return artifact

    # -- private videos ---------------------------------------------------

    async def prepare_private_video(
        self,
        video_id: str,
        quality: int = 2,
        cancel_event: Optional[asyncio.Event] = None,
        before_download: Optional[DownloadGuard] = None,
    ) -> tuple[RemoteFileHandle, Optional[LocalAsset]]:
        """
        Get an ACTIVE remote handle for a video the model can't fetch itself.

        A remote copy found by display name is reused without downloading.
        Otherwise the video is acquired locally and uploaded. The returned
        LocalAsset is None when nothing had to be downloaded. before_download
        is passed to the asset source and only fires on a real download.
        """
        asset: Optional[LocalAsset] = None
        handle = await self._registry.find_by_display_name(video_id)

        if handle is None:
            asset = await self._require_asset_source().acquire(
                video_id, quality, before_download=before_download
            )
            registration = await self._registry.register_or_reuse(video_id, asset.file_path)
            handle = registration.handle
        else:
            logger.info(
                "Remote file already registered, skipping download",
                extra={"video_id": video_id, "remote_name": handle.name}
            )

        active = await self._registry.await_active(handle, cancel_event=cancel_event)
        return active, asset

    async def source_for_existing(self, remote_name: str) -> VideoSource:
        """Build a source from a previously registered remote file."""
        handle = await self._registry.get_usable(remote_name)
        return VideoSource.from_handle(handle)

    # -- screenshots ------------------------------------------------------

    async def capture_screenshots(
        self,
        video_id: str,
        specs: Sequence[ScreenshotSpec],
        quality: int = 2,
        asset: Optional[LocalAsset] = None,
        before_download: Optional[DownloadGuard] = None,
    ) -> list[CapturedImageGroup]:
        """Capture frame groups from the local copy, downloading it if needed."""
        if self._frame_engine is None:
            raise ConfigurationError("Screenshot capture is not configured")
        if asset is None:
            asset = await self._require_asset_source().acquire(
                video_id, quality, before_download=before_download
            )
        return await self._frame_engine.extract(video_id, Path(asset.file_path), specs, quality)

    async def regenerate_screenshots(
        self,
        video_id: str,
        title: str,
        instructions: str = "",
        quality: int = 2,
        private: bool = False,
        before_download: Optional[DownloadGuard] = None,
    ) -> tuple[ContentArtifact, list[CapturedImageGroup]]:
        """
        Ask the model for a fresh article and screenshot plan, then capture.

        Private videos must already have an ACTIVE remote copy, found by
        display name. Public videos are referenced by URL.
        """
        if private:
            handle = await self._registry.find_by_display_name(video_id)
            if handle is None:
                raise RemoteFileNotFoundError(
                    "No remote copy of this video. Generate the article first.",
                    details={"video_id": video_id, "needs_redownload": True},
                )
            if not handle.is_active:
                raise RemoteFileNotReadyError(
                    f"Remote file is not ready (state: {handle.state.value})",
                    details={"video_id": video_id, "state": handle.state.value},
                )
            source = VideoSource.from_handle(handle, video_id=video_id)
        else:
            source = VideoSource.from_public_video(video_id)

        article = await self.generate_article(source, title, instructions)
        groups = await self.capture_screenshots(
            video_id, article.screenshots, quality, before_download=before_download
        )
        return article, groups

    def _require_asset_source(self) -> LocalAssetSource:
        if self._asset_source is None:
            raise ConfigurationError("Video acquisition is not configured")
        return self._asset_source
