"""
Unit tests for content orchestration.

The orchestrator is wired to the in-repo fakes (canned model client,
in-memory file store, placeholder downloader and frame capturer), so the
full flows run without Gemini, yt-dlp or ffmpeg.
"""

import asyncio
import json

import pytest
import yt_dlp

from vidscribe.core.content.models import (
    FilePart,
    ReferenceFile,
    References,
    ScreenshotSpec,
    TextPart,
    VideoPart,
    VideoSource,
)
from vidscribe.core.content.frames import FrameExtractionEngine
from vidscribe.core.content.orchestrator import (
    ContentOrchestrator,
    build_parts,
    extract_json_object,
    parse_article_response,
    parse_metadata_response,
)
from vidscribe.core.content.prompts import JSON_ONLY_REMINDER, build_article_prompt
from vidscribe.core.errors import (
    ConfigurationError,
    RemoteFileNotFoundError,
    RemoteFileNotReadyError,
    ResponseParseError,
)
from vidscribe.core.registry import FileRegistry
from vidscribe.infrastructure.downloader.client import MockDownloader, VideoAcquirer, YtDlpDownloader
from vidscribe.infrastructure.gemini.files import InMemoryFileStore
from vidscribe.infrastructure.gemini.model import MockModelClient
from vidscribe.infrastructure.storage.local import LocalAssetStore
from vidscribe.infrastructure.video.processor import MockFrameCapturer

VIDEO_ID = "dQw4w9WgXcQ"

ARTICLE = {
    "titleA": "Ship Faster With One Command",
    "titleB": "Tired of Slow Deploys?",
    "titleC": "The Build Cache Trick",
    "article_text": "## Intro\n\nText.",
    "seo_description": "Deploy faster with build caching.",
    "screenshots": [{"timestamp_seconds": "01:30", "reason_for_screenshot": "The cache hit"}],
}

METADATA = {
    "titleA": "A",
    "titleB": "B",
    "titleC": "C",
    "description": "Description.",
    "tags": ["one", "two"],
}


class Pipeline:
    """Everything an orchestrator needs, built on the in-repo fakes."""

    def __init__(self, tmp_path, responses=None, activate_after=1):
        self.model = MockModelClient(responses=responses)
        self.store = InMemoryFileStore(activate_after=activate_after)
        self.registry = FileRegistry(self.store, poll_interval_seconds=0, max_poll_attempts=5)
        self.asset_store = LocalAssetStore(tmp_path / "videos")
        self.downloader = MockDownloader(self.asset_store)
        self.capturer = MockFrameCapturer()
        self.orchestrator = ContentOrchestrator(
            model=self.model,
            registry=self.registry,
            frame_engine=FrameExtractionEngine(self.capturer, tmp_path / "images"),
            asset_source=VideoAcquirer(self.asset_store, self.downloader),
        )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

class TestResponseParsing:
    """Model output is validated all-or-nothing."""

    def test_article(self):
        artifact = parse_article_response(json.dumps(ARTICLE))

        assert artifact.titles == [ARTICLE["titleA"], ARTICLE["titleB"], ARTICLE["titleC"]]
        assert artifact.screenshots == [ScreenshotSpec(timestamp="01:30", reason="The cache hit")]

    def test_missing_seo_description_rejected(self):
        data = {k: v for k, v in ARTICLE.items() if k != "seo_description"}
        raw = json.dumps(data)

        with pytest.raises(ResponseParseError, match="seo_description") as exc_info:
            parse_article_response(raw)

        assert exc_info.value.raw_text == raw
        assert exc_info.value.stage == "parsing"

    def test_blank_title_rejected(self):
        with pytest.raises(ResponseParseError, match="titleB"):
            parse_article_response(json.dumps({**ARTICLE, "titleB": "   "}))

    def test_json_wrapped_in_prose(self):
        raw = "Here is the article:\n```json\n" + json.dumps(ARTICLE) + "\n```\nEnjoy!"

        assert parse_article_response(raw).title_a == ARTICLE["titleA"]

    def test_not_json(self):
        with pytest.raises(ResponseParseError):
            extract_json_object("I could not watch the video.")

    def test_array_is_not_an_object(self):
        with pytest.raises(ResponseParseError, match="not a JSON object"):
            extract_json_object("[1, 2, 3]")

    def test_alternate_screenshot_keys(self):
        data = {**ARTICLE, "screenshots": [{"time": "00:42", "caption": "Dashboard"}]}

        artifact = parse_article_response(json.dumps(data))

        assert artifact.screenshots == [ScreenshotSpec(timestamp="00:42", reason="Dashboard")]

    def test_screenshot_without_timestamp_rejected(self):
        data = {**ARTICLE, "screenshots": [{"reason_for_screenshot": "Somewhere"}]}

        with pytest.raises(ResponseParseError, match="no timestamp"):
            parse_article_response(json.dumps(data))

    def test_metadata_tags_as_comma_string(self):
        artifact = parse_metadata_response(json.dumps({**METADATA, "tags": "one, two ,,three"}))

        assert artifact.tags == ["one", "two", "three"]


# ---------------------------------------------------------------------------
# Request assembly
# ---------------------------------------------------------------------------

class TestBuildParts:
    """Video first, references next, prompt last."""

    def test_order(self):
        references = References(
            uploaded_files=[
                ReferenceFile(uri="https://example.test/files/a", mime_type="image/png"),
                ReferenceFile(uri="https://example.test/files/b", mime_type="application/pdf"),
            ],
            reference_videos=["https://www.youtube.com/watch?v=aaaaaaaaaaa"],
        )
        source = VideoSource.from_public_video(VIDEO_ID)

        parts = build_parts(source, "prompt", references)

        assert [type(p) for p in parts] == [VideoPart, FilePart, FilePart, VideoPart, TextPart]
        assert parts[0].uri.endswith(VIDEO_ID)
        assert parts[-1] == TextPart(text="prompt")

    def test_article_prompt_lists_references(self):
        references = References(
            uploaded_files=[ReferenceFile(uri="u", mime_type="application/pdf", display_name="guide.pdf")],
            reference_urls=["https://docs.example.test"],
        )

        prompt = build_article_prompt("Title", "Keep it short", references)

        assert "guide.pdf" in prompt
        assert "https://docs.example.test" in prompt
        assert "Keep it short" in prompt
        assert prompt.endswith(JSON_ONLY_REMINDER)


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------

class TestGeneration:

    def test_public_metadata_uses_youtube_url(self, tmp_path):
        pipeline = Pipeline(tmp_path, responses=[json.dumps(METADATA)])
        source = VideoSource.from_public_video(VIDEO_ID)

        artifact = asyncio.run(pipeline.orchestrator.generate_metadata(source, "Title"))

        assert artifact.tags == ["one", "two"]
        first_part = pipeline.model.calls[0][0]
        assert first_part == VideoPart(uri=f"https://www.youtube.com/watch?v={VIDEO_ID}")

    def test_unparseable_response_propagates(self, tmp_path):
        pipeline = Pipeline(tmp_path, responses=["not json"])
        source = VideoSource.from_public_video(VIDEO_ID)

        with pytest.raises(ResponseParseError):
            asyncio.run(pipeline.orchestrator.generate_article(source, "Title"))


class TestPrivateVideos:
    """Private videos are downloaded and uploaded once, then reused."""

    def test_prepare_uploads_then_reuses(self, tmp_path):
        pipeline = Pipeline(tmp_path)

        async def prepare_twice():
            first = await pipeline.orchestrator.prepare_private_video(VIDEO_ID, 2)
            second = await pipeline.orchestrator.prepare_private_video(VIDEO_ID, 2)
            return first, second

        (first_handle, first_asset), (second_handle, second_asset) = asyncio.run(prepare_twice())

        assert first_handle.is_active
        assert first_asset is not None
        assert second_asset is None
        assert second_handle.name == first_handle.name
        assert pipeline.store.upload_count == 1
        assert len(pipeline.downloader.downloads) == 1

    def test_source_for_missing_remote_file(self, tmp_path):
        pipeline = Pipeline(tmp_path)

        with pytest.raises(RemoteFileNotFoundError):
            asyncio.run(pipeline.orchestrator.source_for_existing("files/expired"))

    def test_download_charged_only_when_nothing_to_reuse(self, tmp_path):
        pipeline = Pipeline(tmp_path)
        charges = []

        def charge():
            charges.append(VIDEO_ID)

        async def prepare_twice():
            await pipeline.orchestrator.prepare_private_video(VIDEO_ID, before_download=charge)
            await pipeline.orchestrator.prepare_private_video(VIDEO_ID, before_download=charge)

        asyncio.run(prepare_twice())

        assert charges == [VIDEO_ID]

    def test_prepare_without_asset_source(self, tmp_path):
        pipeline = Pipeline(tmp_path)
        orchestrator = ContentOrchestrator(model=pipeline.model, registry=pipeline.registry)

        with pytest.raises(ConfigurationError):
            asyncio.run(orchestrator.prepare_private_video(VIDEO_ID))


class TestRegenerateScreenshots:
    """Fresh plan from the model, then frames from the local copy."""

    def test_public_video_end_to_end(self, tmp_path):
        """One planned screenshot at 01:30 yields frames at 88, 90 and 92 seconds."""
        pipeline = Pipeline(tmp_path, responses=[json.dumps(ARTICLE)])

        article, groups = asyncio.run(
            pipeline.orchestrator.regenerate_screenshots(VIDEO_ID, "Title", quality=2)
        )

        assert article.title_a == ARTICLE["titleA"]
        assert len(groups) == 1
        assert groups[0].target_seconds == 90
        assert [seconds for seconds, _ in pipeline.capturer.calls] == [88, 90, 92]
        assert [name for _, name in pipeline.capturer.calls] == [
            f"{VIDEO_ID}_screenshot_0_before_01-28.jpg",
            f"{VIDEO_ID}_screenshot_0_current_01-30.jpg",
            f"{VIDEO_ID}_screenshot_0_after_01-32.jpg",
        ]
        assert (tmp_path / "images" / f"{VIDEO_ID}_screenshot_0_current_01-30.jpg").is_file()
        assert pipeline.downloader.downloads == [(VIDEO_ID, 2)]

    def test_download_charged_for_capture(self, tmp_path):
        pipeline = Pipeline(tmp_path, responses=[json.dumps(ARTICLE)])
        charges = []

        asyncio.run(
            pipeline.orchestrator.regenerate_screenshots(
                VIDEO_ID, "Title", before_download=lambda: charges.append(VIDEO_ID)
            )
        )

        assert charges == [VIDEO_ID]

    def test_high_quality_reaches_yt_dlp_as_1080p_first(self, tmp_path, monkeypatch):
        """Quality 2 asks yt-dlp for a 1080p source before anything else."""
        pipeline = Pipeline(tmp_path, responses=[json.dumps(ARTICLE)])
        seen_options = []

        class FakeYoutubeDL:
            def __init__(self, options):
                seen_options.append(options)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def download(self, urls):
                pipeline.asset_store.path_for(VIDEO_ID).write_bytes(b"merged")

        monkeypatch.setattr(yt_dlp, "YoutubeDL", FakeYoutubeDL)
        orchestrator = ContentOrchestrator(
            model=pipeline.model,
            registry=pipeline.registry,
            frame_engine=FrameExtractionEngine(pipeline.capturer, tmp_path / "images"),
            asset_source=VideoAcquirer(pipeline.asset_store, YtDlpDownloader(pipeline.asset_store)),
        )

        _, groups = asyncio.run(orchestrator.regenerate_screenshots(VIDEO_ID, "Title", quality=2))

        assert len(seen_options) == 1
        assert seen_options[0]["format"].startswith("bestvideo[height<=1080]")
        assert len(groups) == 1
        assert len(groups[0].image_paths) == 3

    def test_private_without_upload(self, tmp_path):
        pipeline = Pipeline(tmp_path, responses=[json.dumps(ARTICLE)])

        with pytest.raises(RemoteFileNotFoundError):
            asyncio.run(
                pipeline.orchestrator.regenerate_screenshots(VIDEO_ID, "Title", private=True)
            )

        assert pipeline.model.calls == []

    def test_private_upload_still_processing(self, tmp_path):
        pipeline = Pipeline(tmp_path, responses=[json.dumps(ARTICLE)], activate_after=100)
        video = tmp_path / "upload.mp4"
        video.write_bytes(b"video")

        async def upload_then_regenerate():
            await pipeline.registry.register_or_reuse(VIDEO_ID, video)
            await pipeline.orchestrator.regenerate_screenshots(VIDEO_ID, "Title", private=True)

        with pytest.raises(RemoteFileNotReadyError):
            asyncio.run(upload_then_regenerate())

    def test_private_uses_remote_uri(self, tmp_path):
        pipeline = Pipeline(tmp_path, responses=[json.dumps(ARTICLE)])

        async def prepare_then_regenerate():
            handle, _ = await pipeline.orchestrator.prepare_private_video(VIDEO_ID)
            await pipeline.orchestrator.regenerate_screenshots(VIDEO_ID, "Title", private=True)
            return handle

        handle = asyncio.run(prepare_then_regenerate())

        assert pipeline.model.calls[0][0] == VideoPart(uri=handle.uri, mime_type="video/mp4")

    def test_capture_requires_engine(self, tmp_path):
        pipeline = Pipeline(tmp_path)
        orchestrator = ContentOrchestrator(model=pipeline.model, registry=pipeline.registry)

        with pytest.raises(ConfigurationError):
            asyncio.run(orchestrator.capture_screenshots(VIDEO_ID, [ScreenshotSpec("00:10")]))
