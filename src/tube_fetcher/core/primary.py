"""Primary retrieval strategy: in-process yt-dlp extraction plus direct streaming."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator

import httpx
import yt_dlp

from ..config.downloaders import browser_headers, quality_height
from ..models import MediaFormat, MediaKind, VideoMetadata

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 256


def _to_media_format(f: dict[str, Any]) -> MediaFormat | None:
    """Convert a yt-dlp format dict, skipping formats without usable streams."""
    has_video = f.get("vcodec") not in (None, "none")
    has_audio = f.get("acodec") not in (None, "none")
    url = f.get("url")
    if not url or not (has_video or has_audio):
        return None
    return MediaFormat(
        identifier=str(f.get("format_id", "")),
        quality_label=f.get("format_note") or f.get("resolution") or "unknown",
        container=f.get("ext") or "unknown",
        has_audio=has_audio,
        has_video=has_video,
        source_url=url,
        height=f.get("height"),
        bitrate=f.get("tbr") or f.get("abr"),
    )


def metadata_from_info(info: dict[str, Any], video_id: str) -> VideoMetadata:
    """Build VideoMetadata from a yt-dlp info dict."""
    formats = [fmt for fmt in map(_to_media_format, info.get("formats") or []) if fmt]
    return VideoMetadata(
        id=info.get("id") or video_id,
        title=info.get("title") or "Unknown Title",
        duration_seconds=int(info.get("duration") or 0),
        thumbnail_url=info.get("thumbnail") or "",
        formats=formats,
    )


def select_format(formats: list[MediaFormat], kind: MediaKind, quality: str) -> MediaFormat | None:
    """
    Pick the format to download.

    Audio requests take the best audio-only format. Video requests take the
    best combined audio+video format, capped at the requested height when a
    resolution label is given.
    """
    def rank(fmt: MediaFormat) -> tuple[int, float]:
        return (fmt.height or 0, fmt.bitrate or 0.0)

    if kind == MediaKind.AUDIO:
        audio_only = [f for f in formats if f.has_audio and not f.has_video]
        if not audio_only:
            audio_only = [f for f in formats if f.has_audio]
        return max(audio_only, key=lambda f: f.bitrate or 0.0, default=None)

    combined = [f for f in formats if f.has_audio and f.has_video]
    height = quality_height(quality)
    if height is not None:
        capped = [f for f in combined if (f.height or 0) <= height]
        if capped:
            return max(capped, key=rank)
        logger.info(f"No combined format at or below {quality}, using best available")
    return max(combined, key=rank, default=None)


class PrimaryClient:
    """
    In-process client: yt-dlp resolves the video, httpx streams the bytes.

    Requests go out with a rotated user-agent and a standard browser header
    set. No proxy is used on this path.
    """

    def __init__(self, network_timeout: float = 30, transport: httpx.AsyncBaseTransport | None = None):
        self.network_timeout = network_timeout
        self._transport = transport

    def _extract_info(self, url: str, headers: dict[str, str]) -> dict[str, Any]:
        ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
            "http_headers": headers,
            "socket_timeout": self.network_timeout,
        }
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=False)
        if not info:
            raise RuntimeError("Unable to extract video info: empty response")
        return info

    async def fetch_info(self, url: str) -> dict[str, Any]:
        """Run yt-dlp extraction off the event loop."""
        return await asyncio.to_thread(self._extract_info, url, browser_headers())

    async def fetch_metadata(self, url: str, video_id: str) -> VideoMetadata:
        info = await self.fetch_info(url)
        return metadata_from_info(info, video_id)

    async def resolve_format(self, url: str, video_id: str, kind: MediaKind, quality: str) -> MediaFormat:
        metadata = await self.fetch_metadata(url, video_id)
        fmt = select_format(metadata.formats, kind, quality)
        if fmt is None:
            raise RuntimeError(f"No video formats found for {kind.value} at quality {quality}")
        logger.debug(f"Selected format {fmt.identifier} ({fmt.quality_label}, {fmt.container})")
        return fmt

    async def stream(self, fmt: MediaFormat) -> AsyncIterator[bytes]:
        """Stream the bytes of a resolved format."""
        async with httpx.AsyncClient(
            timeout=self.network_timeout,
            headers=browser_headers(),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            async with client.stream("GET", fmt.source_url) as response:
                if response.status_code >= 400:
                    raise RuntimeError(f"HTTP Error {response.status_code}: {response.reason_phrase}")
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    yield chunk
