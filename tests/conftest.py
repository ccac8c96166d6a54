"""Pytest configuration with isolated directories and a stubbed pipeline."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from tube_fetcher.core.pipeline import DownloadPipeline
from tube_fetcher.core.ratelimit import RateLimiter
from tube_fetcher.core.retrieval import MediaFetch, RetrievalEngine
from tube_fetcher.core.translation import Translator
from tube_fetcher.models import RetrievalMethod, TranslationOutcome, VideoMetadata

TEST_VIDEO_URL = "https://www.youtube.com/watch?v=abc123XYZ_"
TEST_VIDEO_ID = "abc123XYZ_"


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy."""
    return asyncio.DefaultEventLoopPolicy()


def pytest_configure(config):
    """Configure pytest-asyncio and custom markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line(
        "markers", "network: marks tests as requiring network access"
    )


@pytest.fixture
def isolated_dirs(tmp_path, monkeypatch):
    """Point every configured directory at a temp location."""
    dirs = {
        "config_dir": tmp_path / "config",
        "data_dir": tmp_path / "data",
        "temp_dir": tmp_path / "tmp",
        "download_dir": tmp_path / "downloads",
    }
    for d in dirs.values():
        d.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("TUBE_FETCHER_CONFIG_DIR", str(dirs["config_dir"]))
    monkeypatch.setenv("TUBE_FETCHER_DATA_DIR", str(dirs["data_dir"]))
    monkeypatch.setenv("TUBE_FETCHER_TEMP_DIR", str(dirs["temp_dir"]))
    monkeypatch.setenv("TUBE_FETCHER_DOWNLOAD_DIR", str(dirs["download_dir"]))
    return dirs


class FakeMedia:
    """Stands in for ffmpeg: writes small files and records calls."""

    def __init__(self):
        self.calls: list[tuple] = []

    async def transcode_audio(self, input_path: Path, output_path: Path) -> Path:
        self.calls.append(("transcode_audio", input_path, output_path))
        output_path.write_bytes(b"mp3 data")
        return output_path

    async def transcode_video(self, input_path: Path, output_path: Path, quality_label: str) -> Path:
        self.calls.append(("transcode_video", input_path, output_path, quality_label))
        output_path.write_bytes(b"mp4 data")
        return output_path

    async def extract_audio_track(self, input_path: Path, output_path: Path) -> Path:
        self.calls.append(("extract_audio_track", input_path, output_path))
        output_path.write_bytes(b"wav data")
        return output_path

    async def burn_subtitles(self, video_path: Path, subtitle_path: Path, output_path: Path) -> Path:
        self.calls.append(("burn_subtitles", video_path, subtitle_path, output_path))
        output_path.write_bytes(b"subtitled mp4")
        return output_path

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_engine():
    """Retrieval engine whose media fetch writes a temp file."""
    engine = MagicMock(spec=RetrievalEngine)
    engine.fetch_metadata = AsyncMock(return_value=VideoMetadata(
        id=TEST_VIDEO_ID,
        title="My Test Video!",
        duration_seconds=42,
    ))

    async def fetch_media_to_file(url, kind, quality, dest_base):
        path = dest_base.with_name(f"{dest_base.name}.webm")
        path.write_bytes(b"downloaded media")
        return MediaFetch(path, RetrievalMethod.PRIMARY)

    engine.fetch_media_to_file = AsyncMock(side_effect=fetch_media_to_file)
    return engine


@pytest.fixture
def fake_translator():
    translator = MagicMock(spec=Translator)
    translator.available = True

    async def transcribe_and_translate(audio_path, target_language, source_language=None):
        subtitle = audio_path.with_name(f"{audio_path.stem}_translated.srt")
        subtitle.write_text("1\n00:00:00,000 --> 00:01:00,000\nHola\n")
        return TranslationOutcome(translated_text="Hola", subtitle_artifact_path=str(subtitle))

    translator.transcribe_and_translate = AsyncMock(side_effect=transcribe_and_translate)
    return translator


@pytest.fixture
def pipeline(tmp_path, fake_engine, fake_translator):
    """Pipeline wired to fakes, with temp and download dirs under tmp_path."""
    temp_dir = tmp_path / "tmp"
    download_dir = tmp_path / "downloads"
    temp_dir.mkdir(exist_ok=True)
    download_dir.mkdir(exist_ok=True)
    return DownloadPipeline(
        rate_limiter=RateLimiter(window_seconds=60, max_requests=10, sweep_probability=0),
        engine=fake_engine,
        media=FakeMedia(),
        translator=fake_translator,
        temp_dir=temp_dir,
        download_dir=download_dir,
        token_factory=lambda: "t0k3n",
    )
