"""
Unit tests for the content domain models.

These tests verify the core value objects without touching external
services (no API calls, no Gemini, no yt-dlp).
"""

from types import SimpleNamespace

import pytest

from vidscribe.core.content.models import (
    FileState,
    LocalAsset,
    ReferenceFile,
    References,
    RemoteFileHandle,
    ScreenshotSpec,
    VideoPart,
    VideoSource,
    is_valid_video_id,
)


class TestVideoIdValidation:
    """Video ids are exactly 11 characters of [A-Za-z0-9_-]."""

    @pytest.mark.parametrize("video_id", ["dQw4w9WgXcQ", "a-b_c-d_e-f", "00000000000"])
    def test_accepts_valid_ids(self, video_id):
        assert is_valid_video_id(video_id)

    @pytest.mark.parametrize(
        "video_id",
        ["", "dQw4w9WgXc", "dQw4w9WgXcQQ", "dQw4w9WgX!Q", "dQw4w9WgXc\n", None, 12345678901],
    )
    def test_rejects_invalid_ids(self, video_id):
        assert not is_valid_video_id(video_id)


class TestFileState:
    """Remote states come in as SDK enums or strings."""

    def test_parses_plain_strings(self):
        assert FileState.parse("ACTIVE") is FileState.ACTIVE
        assert FileState.parse("processing") is FileState.PROCESSING

    def test_parses_enum_like_objects_by_name(self):
        sdk_state = SimpleNamespace(name="FAILED")
        assert FileState.parse(sdk_state) is FileState.FAILED

    def test_unknown_state_is_unspecified(self):
        assert FileState.parse("DELETING") is FileState.STATE_UNSPECIFIED
        assert FileState.parse(None) is FileState.STATE_UNSPECIFIED


class TestVideoSource:
    """Public videos use their URL, private ones the remote handle."""

    def test_public_source_points_at_youtube(self):
        source = VideoSource.from_public_video("dQw4w9WgXcQ")

        assert source.uri == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert source.mime_type is None
        assert not source.is_private
        assert source.as_part() == VideoPart(uri=source.uri)

    def test_handle_source_uses_remote_uri(self):
        handle = RemoteFileHandle(
            name="files/abc",
            uri="https://example.test/files/abc",
            display_name="dQw4w9WgXcQ",
            state=FileState.ACTIVE,
        )
        source = VideoSource.from_handle(handle)

        assert source.video_id == "dQw4w9WgXcQ"
        assert source.uri == handle.uri
        assert source.mime_type == "video/mp4"
        assert source.is_private


class TestReferenceFile:
    """The manifest labels reference files by kind."""

    @pytest.mark.parametrize(
        "mime_type,display_name,kind",
        [
            ("image/png", "diagram.png", "image"),
            ("application/pdf", "guide.pdf", "PDF document"),
            ("text/markdown", "notes.md", "Markdown document"),
            ("application/octet-stream", "notes.md", "Markdown document"),
            ("text/plain", "notes.txt", "text file"),
            ("application/zip", "bundle.zip", "file"),
        ],
    )
    def test_kind(self, mime_type, display_name, kind):
        assert ReferenceFile(uri="u", mime_type=mime_type, display_name=display_name).kind == kind

    def test_references_empty_by_default(self):
        assert References().is_empty
        assert not References(reference_urls=["https://example.test"]).is_empty


class TestLocalAsset:
    """Assets snapshot the file on disk."""

    def test_from_path_reads_size_and_mtime(self, tmp_path):
        path = tmp_path / "dQw4w9WgXcQ.mp4"
        path.write_bytes(b"x" * 2048)

        asset = LocalAsset.from_path("dQw4w9WgXcQ", path)

        assert asset.size_bytes == 2048
        assert asset.mtime == path.stat().st_mtime
        assert asset.size_mb == pytest.approx(2048 / (1024 * 1024))


class TestScreenshotSpec:

    def test_rejects_blank_timestamp(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            ScreenshotSpec(timestamp="  ")
