"""
Unit tests for the ffmpeg frame capturer.

subprocess.run is replaced, so ffmpeg doesn't need to be installed.
"""

import asyncio
import subprocess

import pytest

from vidscribe.core.errors import FrameCaptureError, FrameCaptureUnavailableError
from vidscribe.infrastructure.video import processor
from vidscribe.infrastructure.video.processor import (
    MINIMAL_JPEG,
    FFmpegFrameCapturer,
    MockFrameCapturer,
    create_frame_capturer,
)


def fake_run(returncode=0, writes_output=False, raises=None):
    def run(cmd, **kwargs):
        if raises is not None:
            raise raises
        if writes_output and cmd[1] != "-version":
            with open(cmd[-2], "wb") as out:
                out.write(MINIMAL_JPEG)
        return subprocess.CompletedProcess(cmd, returncode, stdout=b"", stderr=b"boom")

    return run


class TestFFmpegFrameCapturer:

    def test_missing_binary(self, monkeypatch):
        monkeypatch.setattr(processor.subprocess, "run", fake_run(raises=FileNotFoundError()))

        with pytest.raises(FrameCaptureUnavailableError, match="FFmpeg not found"):
            FFmpegFrameCapturer()

    def test_command_seeks_before_input(self, monkeypatch, tmp_path):
        monkeypatch.setattr(processor.subprocess, "run", fake_run())
        capturer = FFmpegFrameCapturer("ffmpeg")

        cmd = capturer.build_command(tmp_path / "v.mp4", 88, tmp_path / "out.jpg", 40)

        assert cmd == [
            "ffmpeg", "-ss", "88", "-i", str(tmp_path / "v.mp4"),
            "-vframes", "1", "-q:v", "31", str(tmp_path / "out.jpg"), "-y",
        ]

    def test_capture_writes_frame(self, monkeypatch, tmp_path):
        monkeypatch.setattr(processor.subprocess, "run", fake_run(writes_output=True))
        output = tmp_path / "out.jpg"

        asyncio.run(FFmpegFrameCapturer().capture(tmp_path / "v.mp4", 5, output, 2))

        assert output.read_bytes() == MINIMAL_JPEG

    def test_nonzero_exit(self, monkeypatch, tmp_path):
        monkeypatch.setattr(processor.subprocess, "run", fake_run())
        capturer = FFmpegFrameCapturer()
        monkeypatch.setattr(processor.subprocess, "run", fake_run(returncode=1))

        with pytest.raises(FrameCaptureError) as exc_info:
            asyncio.run(capturer.capture(tmp_path / "v.mp4", 5, tmp_path / "out.jpg", 2))

        assert exc_info.value.details["returncode"] == 1

    def test_timeout(self, monkeypatch, tmp_path):
        monkeypatch.setattr(processor.subprocess, "run", fake_run())
        capturer = FFmpegFrameCapturer()
        monkeypatch.setattr(
            processor.subprocess,
            "run",
            fake_run(raises=subprocess.TimeoutExpired("ffmpeg", 30)),
        )

        with pytest.raises(FrameCaptureError, match="timed out"):
            asyncio.run(capturer.capture(tmp_path / "v.mp4", 5, tmp_path / "out.jpg", 2))


class TestMockFrameCapturer:

    def test_factory_and_capture(self, tmp_path):
        capturer = create_frame_capturer(mock_mode=True)
        output = tmp_path / "nested" / "frame.jpg"

        asyncio.run(capturer.capture(tmp_path / "v.mp4", 7, output, 2))

        assert isinstance(capturer, MockFrameCapturer)
        assert output.read_bytes() == MINIMAL_JPEG
        assert capturer.calls == [(7, "frame.jpg")]
