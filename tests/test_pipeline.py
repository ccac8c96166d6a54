"""Tests for the download pipeline."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tube_fetcher.core.pipeline import slugify
from tube_fetcher.core.ratelimit import RateLimiter
from tube_fetcher.errors import (
    CodecError,
    InvalidUrlError,
    RateLimitedError,
    RetrievalFailedError,
    ToolTimeoutError,
)
from tube_fetcher.models import DownloadRequest, RetrievalMethod

TEST_VIDEO_URL = "https://www.youtube.com/watch?v=abc123XYZ_"


def temp_leftovers(pipeline) -> list[str]:
    return sorted(p.name for p in pipeline.temp_dir.iterdir())


class TestSlugify:
    def test_replaces_non_alphanumerics_and_lowercases(self):
        assert slugify("My Test Video!") == "my_test_video_"

    def test_keeps_digits(self):
        assert slugify("Top 10 (2024)") == "top_10__2024_"


class TestScenarios:
    """End-to-end runs against stubbed retrieval, codec and translation."""

    @pytest.mark.asyncio
    async def test_mp3_produces_single_audio_artifact(self, pipeline):
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp3", quality="highest")

        result = await pipeline.download(request, "client-a")

        assert len(result.files) == 1
        artifact = result.files[0]
        assert artifact.format == "mp3"
        assert artifact.translated is False
        assert artifact.filename.endswith(".mp3")
        assert artifact.download_path == f"/downloads/{artifact.filename}"
        assert pipeline.media.operations() == ["transcode_audio"]
        assert result.method == RetrievalMethod.PRIMARY
        assert result.remaining_requests == 9
        assert temp_leftovers(pipeline) == []

    @pytest.mark.asyncio
    async def test_highest_quality_mp4_is_moved_not_reencoded(self, pipeline):
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4", quality="highest")

        result = await pipeline.download(request, "client-a")

        assert pipeline.media.operations() == []
        artifact = result.files[0]
        assert artifact.quality == "highest"
        final_path = pipeline.download_dir / artifact.filename
        assert final_path.name == "my_test_video__highest.mp4"
        assert final_path.read_bytes() == b"downloaded media"
        assert artifact.size_bytes == len(b"downloaded media")
        assert temp_leftovers(pipeline) == []

    @pytest.mark.asyncio
    async def test_translation_adds_subtitled_artifact(self, pipeline):
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4", quality="720p", translate_to="es")

        result = await pipeline.download(request, "client-a")

        assert len(result.files) == 2
        primary, translated = result.files
        assert primary.translated is False
        assert translated.translated is True
        assert "_es" in translated.filename
        assert pipeline.media.operations() == ["transcode_video", "extract_audio_track", "burn_subtitles"]
        # wav and srt are temp files too
        assert temp_leftovers(pipeline) == []
        pipeline.translator.transcribe_and_translate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_translation_without_credential_is_skipped(self, pipeline):
        pipeline.translator.available = False
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4", quality="720p", translate_to="es")

        result = await pipeline.download(request, "client-a")

        assert len(result.files) == 1
        assert result.files[0].translated is False
        pipeline.translator.transcribe_and_translate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_translation_failure_is_swallowed(self, pipeline):
        pipeline.translator.transcribe_and_translate = AsyncMock(side_effect=RuntimeError("api down"))
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4", quality="480p", translate_to="fr")

        result = await pipeline.download(request, "client-a")

        assert [f.translated for f in result.files] == [False]
        assert temp_leftovers(pipeline) == []

    @pytest.mark.asyncio
    async def test_translation_not_attempted_for_audio(self, pipeline):
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp3", quality="highest", translate_to="es")

        result = await pipeline.download(request, "client-a")

        assert len(result.files) == 1
        pipeline.translator.transcribe_and_translate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reports_external_tool_method(self, pipeline, fake_engine):
        original = fake_engine.fetch_media_to_file.side_effect

        async def via_tool(*args):
            fetch = await original(*args)
            return fetch.__class__(fetch.path, RetrievalMethod.EXTERNAL_TOOL)

        fake_engine.fetch_media_to_file.side_effect = via_tool
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp3")

        result = await pipeline.download(request, "client-a")

        assert result.method == RetrievalMethod.EXTERNAL_TOOL
        assert result.model_dump(mode="json", by_alias=True)["method"] == "external-tool"


class TestFailures:
    @pytest.mark.asyncio
    async def test_invalid_url_fails_before_any_call(self, pipeline, fake_engine):
        request = DownloadRequest(url="not-a-url", format="mp4")

        with pytest.raises(InvalidUrlError):
            await pipeline.download(request, "client-a")

        fake_engine.fetch_metadata.assert_not_awaited()
        fake_engine.fetch_media_to_file.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limited_client_is_rejected(self, pipeline, fake_engine):
        pipeline.rate_limiter = RateLimiter(window_seconds=60, max_requests=1, sweep_probability=0)
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp3")

        await pipeline.download(request, "client-a")
        with pytest.raises(RateLimitedError) as exc_info:
            await pipeline.download(request, "client-a")

        assert exc_info.value.remaining == 0
        assert exc_info.value.reset_at > 0
        assert fake_engine.fetch_metadata.await_count == 1

    @pytest.mark.asyncio
    async def test_codec_failure_propagates_and_cleans_temp(self, pipeline):
        pipeline.media.transcode_video = AsyncMock(side_effect=CodecError("transcode_video", "bad input"))
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4", quality="720p")

        with pytest.raises(CodecError):
            await pipeline.download(request, "client-a")

        assert temp_leftovers(pipeline) == []

    @pytest.mark.asyncio
    async def test_retrieval_failure_propagates(self, pipeline, fake_engine):
        fake_engine.fetch_media_to_file.side_effect = RetrievalFailedError("HTTP Error 403", "exit code 1")
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4")

        with pytest.raises(RetrievalFailedError):
            await pipeline.download(request, "client-a")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        RetrievalFailedError("HTTP Error 403", "exit code 1"),
        ToolTimeoutError("yt-dlp timed out after 300s"),
    ])
    async def test_partial_retrieval_output_is_removed(self, pipeline, fake_engine, error):
        async def fail_midway(url, kind, quality, dest_base):
            dest_base.with_name(f"{dest_base.name}.webm.part").write_bytes(b"half")
            dest_base.with_name(f"{dest_base.name}.f251.webm").write_bytes(b"audio track")
            raise error

        fake_engine.fetch_media_to_file.side_effect = fail_midway
        request = DownloadRequest(url=TEST_VIDEO_URL, format="mp4")

        with pytest.raises(type(error)):
            await pipeline.download(request, "client-a")

        assert temp_leftovers(pipeline) == []


class TestDescribe:
    @pytest.mark.asyncio
    async def test_returns_metadata_and_remaining(self, pipeline):
        result = await pipeline.describe(TEST_VIDEO_URL, "client-b")

        assert result.success is True
        assert result.data.title == "My Test Video!"
        assert result.remaining_requests == 9
        body = result.model_dump(mode="json", by_alias=True)
        assert body["data"]["durationSeconds"] == 42
        assert body["remainingRequests"] == 9
