"""Tests for ffmpeg-backed media processing."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tube_fetcher.core.media import (
    DEFAULT_VIDEO_QUALITY,
    VIDEO_QUALITY_TABLE,
    MediaProcessor,
    probe_duration,
    size_of,
    video_settings,
)
from tube_fetcher.errors import CodecError, ToolTimeoutError


def fake_process(returncode: int = 0, stderr: bytes = b"", output: Path | None = None):
    """A finished subprocess; optionally writes the output file on communicate."""
    process = MagicMock()
    process.returncode = returncode

    async def communicate():
        if output is not None:
            output.write_bytes(b"encoded")
        return b"", stderr

    process.communicate = communicate
    process.wait = AsyncMock(return_value=returncode)
    return process


class TestHelpers:
    def test_size_of_missing_file_is_zero(self, tmp_path):
        assert size_of(tmp_path / "missing.mp4") == 0

    def test_size_of_existing_file(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"12345")
        assert size_of(path) == 5

    def test_unknown_quality_uses_default_tier(self):
        assert DEFAULT_VIDEO_QUALITY == "720p"
        assert video_settings("highest") == VIDEO_QUALITY_TABLE["720p"]
        assert video_settings("240p") == ("1280x720", "2000k")
        assert video_settings("1080p") == ("1920x1080", "4000k")

    def test_probe_duration(self):
        container = MagicMock()
        container.duration = 90_500_000
        container.__enter__ = MagicMock(return_value=container)
        container.__exit__ = MagicMock(return_value=False)

        with patch("tube_fetcher.core.media.av.open", return_value=container):
            assert probe_duration("/fake/video.mp4") == pytest.approx(90.5)

    def test_probe_duration_unreadable_is_zero(self):
        with patch("tube_fetcher.core.media.av.open", side_effect=OSError("invalid data")):
            assert probe_duration("/fake/video.mp4") == 0.0

    def test_probe_duration_unknown_is_zero(self):
        container = MagicMock()
        container.duration = None
        container.__enter__ = MagicMock(return_value=container)
        container.__exit__ = MagicMock(return_value=False)

        with patch("tube_fetcher.core.media.av.open", return_value=container):
            assert probe_duration("/fake/video.mp4") == 0.0


class TestProcessor:
    @pytest.mark.asyncio
    async def test_transcode_audio_args(self, tmp_path):
        output = tmp_path / "out.mp3"
        spawn = AsyncMock(return_value=fake_process(output=output))
        processor = MediaProcessor(audio_bitrate="192k")

        with patch("asyncio.create_subprocess_exec", spawn):
            result = await processor.transcode_audio(tmp_path / "in.webm", output)

        assert result == output
        cmd = list(spawn.call_args.args)
        assert cmd[0] == "ffmpeg"
        assert cmd[-1] == str(output)
        assert cmd[cmd.index("-c:a") + 1] == "libmp3lame"
        assert cmd[cmd.index("-b:a") + 1] == "192k"
        assert "-y" in cmd

    @pytest.mark.asyncio
    async def test_transcode_video_uses_quality_tier(self, tmp_path):
        output = tmp_path / "out.mp4"
        spawn = AsyncMock(return_value=fake_process(output=output))

        with patch("asyncio.create_subprocess_exec", spawn):
            await MediaProcessor().transcode_video(tmp_path / "in.webm", output, "480p")

        cmd = list(spawn.call_args.args)
        assert cmd[cmd.index("-s") + 1] == "854x480"
        assert cmd[cmd.index("-b:v") + 1] == "1000k"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"

    @pytest.mark.asyncio
    async def test_burn_subtitles_maps_streams(self, tmp_path):
        output = tmp_path / "out_es.mp4"
        spawn = AsyncMock(return_value=fake_process(output=output))

        with patch("asyncio.create_subprocess_exec", spawn):
            await MediaProcessor().burn_subtitles(tmp_path / "v.mp4", tmp_path / "s.srt", output)

        cmd = list(spawn.call_args.args)
        assert cmd[cmd.index("-c:s") + 1] == "mov_text"
        assert "1:s:0" in cmd

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_codec_error(self, tmp_path):
        output = tmp_path / "out.wav"
        process = fake_process(returncode=1, stderr=b"Guessed format\nin.webm: Invalid data found\n", output=output)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(CodecError) as exc_info:
                await MediaProcessor().extract_audio_track(tmp_path / "in.webm", output)

        assert exc_info.value.operation == "extract_audio_track"
        assert exc_info.value.detail == "in.webm: Invalid data found"
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_missing_binary_raises_codec_error(self, tmp_path):
        processor = MediaProcessor(binary="definitely-not-ffmpeg")

        with pytest.raises(CodecError, match="not found"):
            await processor.transcode_audio(tmp_path / "in.webm", tmp_path / "out.mp3")

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        process = MagicMock()

        async def hang():
            await asyncio.sleep(10)

        process.communicate = hang
        process.wait = AsyncMock(return_value=-9)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ToolTimeoutError):
                await MediaProcessor(timeout=0.01).transcode_audio(tmp_path / "in.webm", tmp_path / "out.mp3")

        process.kill.assert_called_once()
