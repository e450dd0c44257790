"""
Unit tests for video acquisition.

yt-dlp itself is never run: tests that exercise YtDlpDownloader replace
yt_dlp.YoutubeDL with a fake that writes (or doesn't write) the output
file, which is all the downloader looks at.
"""

import asyncio

import pytest
import yt_dlp
from yt_dlp.utils import DownloadError as YtDlpDownloadError

from vidscribe.core.errors import DownloadError, EmptyDownloadError
from vidscribe.infrastructure.downloader.client import (
    MockDownloader,
    VideoAcquirer,
    YtDlpDownloader,
    create_downloader,
    format_selector_for_quality,
)
from vidscribe.infrastructure.storage.local import LocalAssetStore

VIDEO_ID = "dQw4w9WgXcQ"


def fake_youtube_dl(store: LocalAssetStore, writes_file: bool, raises: bool = False):
    """Build a YoutubeDL stand-in bound to a store."""

    class FakeYoutubeDL:
        instances = []

        def __init__(self, options):
            self.options = options
            FakeYoutubeDL.instances.append(self)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def download(self, urls):
            self.urls = urls
            if writes_file:
                store.path_for(VIDEO_ID).write_bytes(b"merged")
            if raises:
                raise YtDlpDownloadError("ERROR: postprocessing failed")

    return FakeYoutubeDL


# ---------------------------------------------------------------------------
# Format selection
# ---------------------------------------------------------------------------

class TestFormatSelector:
    """Quality picks a resolution ceiling."""

    @pytest.mark.parametrize("quality", [2, 5, 10])
    def test_high_quality_prefers_1080p(self, quality):
        selector = format_selector_for_quality(quality)

        assert selector.startswith("bestvideo[height<=1080][ext=mp4]+bestaudio[ext=m4a]")
        assert "height<=720" in selector
        assert "height<=480" not in selector

    @pytest.mark.parametrize("quality", [11, 20, 31])
    def test_low_quality_prefers_720p(self, quality):
        selector = format_selector_for_quality(quality)

        assert selector.startswith("bestvideo[height<=720][ext=mp4]+bestaudio[ext=m4a]")
        assert "height<=480" in selector
        assert "height<=1080" not in selector

    def test_always_ends_with_best(self):
        assert format_selector_for_quality(2).endswith("/best")


# ---------------------------------------------------------------------------
# yt-dlp downloader
# ---------------------------------------------------------------------------

class TestYtDlpDownloader:
    """Success means an output file, whatever yt-dlp says."""

    def test_successful_download(self, tmp_path, monkeypatch):
        store = LocalAssetStore(tmp_path)
        fake = fake_youtube_dl(store, writes_file=True)
        monkeypatch.setattr(yt_dlp, "YoutubeDL", fake)

        asset = asyncio.run(YtDlpDownloader(store).download(VIDEO_ID, 2))

        assert asset.file_path == tmp_path / f"{VIDEO_ID}.mp4"
        assert asset.size_bytes == len(b"merged")
        options = fake.instances[0].options
        assert options["outtmpl"] == str(tmp_path / f"{VIDEO_ID}.%(ext)s")
        assert options["merge_output_format"] == "mp4"
        assert options["retries"] == 5
        assert fake.instances[0].urls == [f"https://www.youtube.com/watch?v={VIDEO_ID}"]

    def test_missing_output_is_empty_download(self, tmp_path, monkeypatch):
        """yt-dlp returning normally without a file is still a failure."""
        store = LocalAssetStore(tmp_path)
        monkeypatch.setattr(yt_dlp, "YoutubeDL", fake_youtube_dl(store, writes_file=False))

        with pytest.raises(EmptyDownloadError):
            asyncio.run(YtDlpDownloader(store).download(VIDEO_ID, 2))

    def test_error_with_output_is_accepted(self, tmp_path, monkeypatch):
        store = LocalAssetStore(tmp_path)
        monkeypatch.setattr(yt_dlp, "YoutubeDL", fake_youtube_dl(store, writes_file=True, raises=True))

        asset = asyncio.run(YtDlpDownloader(store).download(VIDEO_ID, 2))

        assert asset.file_path.exists()

    def test_error_without_output_fails(self, tmp_path, monkeypatch):
        store = LocalAssetStore(tmp_path)
        monkeypatch.setattr(yt_dlp, "YoutubeDL", fake_youtube_dl(store, writes_file=False, raises=True))

        with pytest.raises(DownloadError) as exc_info:
            asyncio.run(YtDlpDownloader(store).download(VIDEO_ID, 2))

        assert not isinstance(exc_info.value, EmptyDownloadError)
        assert exc_info.value.stage == "download"


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------

class TestVideoAcquirer:
    """The cache is checked before any download."""

    def test_downloads_once_then_reuses(self, tmp_path):
        store = LocalAssetStore(tmp_path)
        downloader = MockDownloader(store)
        acquirer = VideoAcquirer(store, downloader)

        async def acquire_twice():
            first = await acquirer.acquire(VIDEO_ID, 2)
            second = await acquirer.acquire(VIDEO_ID, 2)
            return first, second

        first, second = asyncio.run(acquire_twice())

        assert downloader.downloads == [(VIDEO_ID, 2)]
        assert first.file_path == second.file_path

    def test_concurrent_requests_share_download(self, tmp_path):
        store = LocalAssetStore(tmp_path)
        downloader = MockDownloader(store)
        acquirer = VideoAcquirer(store, downloader)

        async def race():
            return await asyncio.gather(
                acquirer.acquire(VIDEO_ID, 2),
                acquirer.acquire(VIDEO_ID, 2),
            )

        asyncio.run(race())

        assert len(downloader.downloads) == 1

    def test_existing_file_skips_download(self, tmp_path):
        store = LocalAssetStore(tmp_path)
        store.path_for(VIDEO_ID).write_bytes(b"cached")
        downloader = MockDownloader(store)

        asset = asyncio.run(VideoAcquirer(store, downloader).acquire(VIDEO_ID))

        assert downloader.downloads == []
        assert asset.size_bytes == len(b"cached")

    def test_before_download_runs_only_on_a_miss(self, tmp_path):
        store = LocalAssetStore(tmp_path)
        downloader = MockDownloader(store)
        acquirer = VideoAcquirer(store, downloader)
        charges = []

        async def acquire_twice():
            await acquirer.acquire(VIDEO_ID, 2, before_download=lambda: charges.append(VIDEO_ID))
            await acquirer.acquire(VIDEO_ID, 2, before_download=lambda: charges.append(VIDEO_ID))

        asyncio.run(acquire_twice())

        assert charges == [VIDEO_ID]

    def test_before_download_can_refuse(self, tmp_path):
        store = LocalAssetStore(tmp_path)
        downloader = MockDownloader(store)

        def refuse():
            raise DownloadError("out of downloads")

        with pytest.raises(DownloadError, match="out of downloads"):
            asyncio.run(VideoAcquirer(store, downloader).acquire(VIDEO_ID, before_download=refuse))

        assert downloader.downloads == []
        assert store.get(VIDEO_ID) is None

    def test_factory_mock_mode(self, tmp_path):
        assert isinstance(create_downloader(LocalAssetStore(tmp_path), mock_mode=True), MockDownloader)


class TestLocalAssetStore:

    def test_remove(self, tmp_path):
        store = LocalAssetStore(tmp_path)
        store.path_for(VIDEO_ID).write_bytes(b"x")

        assert store.remove(VIDEO_ID) is True
        assert store.get(VIDEO_ID) is None
        assert store.remove(VIDEO_ID) is False
