"""Per-request download pipeline.

Stages: admitted -> metadata fetched -> retrieved -> processed -> [translated]
-> cleaned up -> responded. Any failure before cleanup aborts the request;
cleanup of the temp files created so far runs on every path.
"""

from __future__ import annotations

import asyncio
import glob
import logging
import re
import shutil
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from ..errors import EmptyOutputError, RateLimitedError
from ..models import (
    DownloadArtifact,
    DownloadRequest,
    DownloadResult,
    MediaKind,
    MetadataResult,
    VideoIdentity,
)
from .cleanup import remove_files
from .media import MediaProcessor, probe_duration, size_of
from .ratelimit import RateLimiter
from .retrieval import RetrievalEngine, derive_identity
from .translation import Translator, subtitle_path_for

logger = logging.getLogger(__name__)

HIGHEST = "highest"


class PipelineStage(str, Enum):
    ADMITTED = "admitted"
    METADATA_FETCHED = "metadata_fetched"
    RETRIEVED = "retrieved"
    PROCESSED = "processed"
    TRANSLATED = "translated"
    CLEANED_UP = "cleaned_up"
    RESPONDED = "responded"
    ABORTED = "aborted"


def slugify(text: str) -> str:
    """Filesystem-safe slug: every non-alphanumeric becomes "_", lower-cased."""
    return re.sub(r"[^a-z0-9]", "_", text, flags=re.IGNORECASE).lower()


@dataclass
class RequestContext:
    identity: VideoIdentity
    token: str
    stage: PipelineStage = PipelineStage.ADMITTED
    temp_files: list[Path] = field(default_factory=list)
    # Output bases whose tool-chosen extension is unknown until retrieval returns
    temp_bases: list[Path] = field(default_factory=list)

    def known_temp_files(self) -> list[Path]:
        partials = [
            path
            for base in self.temp_bases
            for path in base.parent.glob(f"{glob.escape(base.name)}.*")
            if path not in self.temp_files
        ]
        return [*self.temp_files, *partials]

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.info(f"[{self.token}] {self.identity.video_id}: {stage.value}")


class DownloadPipeline:
    """Sequences admission, retrieval, processing, translation and cleanup."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        engine: RetrievalEngine,
        media: MediaProcessor,
        translator: Translator,
        temp_dir: Path,
        download_dir: Path,
        public_prefix: str = "/downloads",
        token_factory: Callable[[], str] = lambda: uuid.uuid4().hex[:8],
    ):
        self.rate_limiter = rate_limiter
        self.engine = engine
        self.media = media
        self.translator = translator
        self.temp_dir = temp_dir
        self.download_dir = download_dir
        self.public_prefix = public_prefix.rstrip("/")
        self.token_factory = token_factory

    def admit(self, client_id: str) -> None:
        """Raise RateLimitedError if the client is over its quota."""
        if not self.rate_limiter.admit(client_id):
            raise RateLimitedError(
                self.rate_limiter.remaining(client_id),
                self.rate_limiter.reset_at(client_id),
            )

    async def describe(self, url: str, client_id: str) -> MetadataResult:
        """Metadata-only lookup."""
        self.admit(client_id)
        metadata = await self.engine.fetch_metadata(url)
        return MetadataResult(data=metadata, remaining_requests=self.rate_limiter.remaining(client_id))

    async def download(self, request: DownloadRequest, client_id: str) -> DownloadResult:
        """Run the full pipeline for one request."""
        self.admit(client_id)
        ctx = RequestContext(identity=derive_identity(request.url), token=self.token_factory())
        ctx.advance(PipelineStage.ADMITTED)

        try:
            metadata = await self.engine.fetch_metadata(ctx.identity.source_url)
            ctx.advance(PipelineStage.METADATA_FETCHED)

            slug = slugify(metadata.title)
            if not slug.strip("_"):
                slug = ctx.identity.video_id
            quality_slug = slugify(request.quality)
            kind = MediaKind.AUDIO if request.format == "mp3" else MediaKind.VIDEO
            temp_base = self.temp_dir / f"{ctx.identity.video_id}_{ctx.token}_temp"
            final_path = self.download_dir / f"{slug}_{quality_slug}.{request.format}"
            ctx.temp_bases.append(temp_base)

            fetch = await self.engine.fetch_media_to_file(ctx.identity.source_url, kind, request.quality, temp_base)
            ctx.temp_files.append(fetch.path)
            if size_of(fetch.path) == 0:
                raise EmptyOutputError(f"Retrieved file is empty: {fetch.path.name}")
            ctx.advance(PipelineStage.RETRIEVED)

            processed = await self._process(request, fetch.path, final_path)
            ctx.advance(PipelineStage.PROCESSED)

            files = [self._artifact(processed, request, translated=False)]

            if request.translate_to and request.translate_to.strip():
                translated = await self._translate(ctx, request, processed, slug, quality_slug)
                if translated is not None:
                    files.append(translated)
                    ctx.advance(PipelineStage.TRANSLATED)
        except BaseException as e:
            ctx.stage = PipelineStage.ABORTED
            logger.warning(f"[{ctx.token}] {ctx.identity.video_id}: aborted ({e.__class__.__name__}: {e})")
            raise
        finally:
            remove_files(ctx.known_temp_files())
            logger.info(f"[{ctx.token}] {ctx.identity.video_id}: {PipelineStage.CLEANED_UP.value}")

        result = DownloadResult(
            files=files,
            method=fetch.method,
            remaining_requests=self.rate_limiter.remaining(client_id),
        )
        ctx.advance(PipelineStage.RESPONDED)
        return result

    async def _process(self, request: DownloadRequest, temp_path: Path, final_path: Path) -> Path:
        final_path.parent.mkdir(parents=True, exist_ok=True)
        if request.format == "mp3":
            return await self.media.transcode_audio(temp_path, final_path)
        if request.quality != HIGHEST:
            return await self.media.transcode_video(temp_path, final_path, request.quality)
        # Best quality is kept as downloaded.
        await asyncio.to_thread(shutil.move, str(temp_path), str(final_path))
        return final_path

    async def _translate(
        self,
        ctx: RequestContext,
        request: DownloadRequest,
        processed: Path,
        slug: str,
        quality_slug: str,
    ) -> DownloadArtifact | None:
        """Add a subtitled copy of the video. Failures are logged and swallowed."""
        language = request.translate_to.strip()
        if not self.translator.available:
            logger.warning("Translation requested but OPENAI_API_KEY is not configured")
            return None
        if request.format != "mp4":
            logger.info(f"[{ctx.token}] Skipping translation for audio-only download")
            return None

        try:
            audio_path = self.temp_dir / f"{ctx.identity.video_id}_{ctx.token}_audio.wav"
            ctx.temp_files.extend([audio_path, subtitle_path_for(audio_path)])
            await self.media.extract_audio_track(processed, audio_path)

            outcome = await self.translator.transcribe_and_translate(audio_path, language)
            if not outcome.subtitle_artifact_path:
                return None

            translated_path = self.download_dir / f"{slug}_{quality_slug}_{slugify(language)}.mp4"
            await self.media.burn_subtitles(processed, Path(outcome.subtitle_artifact_path), translated_path)
            return self._artifact(translated_path, request, translated=True)
        except Exception as e:
            logger.warning(f"[{ctx.token}] Translation failed, continuing without it: {e}", exc_info=True)
            return None

    def _artifact(self, path: Path, request: DownloadRequest, translated: bool) -> DownloadArtifact:
        return DownloadArtifact(
            filename=path.name,
            size_bytes=size_of(path),
            format=request.format,
            quality=request.quality,
            translated=translated,
            download_path=f"{self.public_prefix}/{path.name}",
            duration_seconds=probe_duration(path),
        )
