"""Retrieval engine: primary client with classified fallback to the external tool."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

from ..config.downloaders import match_video_id
from ..errors import (
    EmptyOutputError,
    InvalidUrlError,
    OutputMissingError,
    RetrievalFailedError,
    ToolTimeoutError,
)
from ..models import MediaKind, RetrievalMethod, VideoIdentity, VideoMetadata
from .classify import FailureCategory, classify_failure, error_for_category
from .external_tool import ExternalToolClient, ToolFailedError
from .primary import PrimaryClient
from .proxies import ProxyPool

logger = logging.getLogger(__name__)

T = TypeVar("T")


def derive_identity(url: str) -> VideoIdentity:
    """Validate the URL shape and derive the video identity."""
    video_id = match_video_id(url or "")
    if not video_id:
        raise InvalidUrlError(f"Not a recognised YouTube URL: {url!r}")
    return VideoIdentity(video_id=video_id, source_url=url.strip())


@dataclass(frozen=True)
class MediaFetch:
    """A retrieved media file and the strategy that produced it."""

    path: Path
    method: RetrievalMethod


class RetrievalEngine:
    """
    Two-state retrieval: ``PRIMARY`` first, ``EXTERNAL_TOOL`` on classified failure.

    A primary failure is classified by ``classify_failure``. Bot detection and
    parser breakage switch to the external tool; every other category is
    terminal and raised immediately. When both strategies fail the error
    carries both messages.
    """

    def __init__(
        self,
        primary: PrimaryClient,
        external: ExternalToolClient,
        proxy_pool: ProxyPool | None = None,
        static_proxy: str | None = None,
    ):
        self.primary = primary
        self.external = external
        self.proxy_pool = proxy_pool
        self.static_proxy = static_proxy

    async def _pick_proxy(self) -> tuple[str | None, bool]:
        """Return (proxy, from_pool). Falls back to the static proxy, then none."""
        if self.proxy_pool is not None:
            await self.proxy_pool.ensure_fresh()
            proxy = self.proxy_pool.get_next()
            if proxy:
                return proxy, True
        return self.static_proxy, False

    async def _run_fallback(self, primary_message: str, action: Callable[[str | None], Awaitable[T]]) -> T:
        proxy, from_pool = await self._pick_proxy()
        logger.info(f"Falling back to external tool (proxy: {proxy or 'none'})")
        try:
            result = await action(proxy)
        except ToolFailedError as e:
            if from_pool:
                self.proxy_pool.report_failure(proxy)
            logger.warning(f"External tool failed: {e}")
            raise RetrievalFailedError(primary_message, str(e)) from e
        except ToolTimeoutError:
            if from_pool:
                self.proxy_pool.report_failure(proxy)
            raise
        except (OutputMissingError, EmptyOutputError):
            # The tool exited cleanly, so the proxy carried the request.
            if from_pool:
                self.proxy_pool.report_success(proxy)
            raise
        if from_pool:
            self.proxy_pool.report_success(proxy)
        return result

    def _classify_primary(self, error: Exception) -> tuple[FailureCategory, str]:
        message = str(error) or error.__class__.__name__
        category = classify_failure(message)
        logger.info(f"Primary strategy failed ({category.value}): {message}")
        if not category.fallback_worthy:
            raise error_for_category(category, message) from error
        return category, message

    async def fetch_metadata(self, url: str) -> VideoMetadata:
        """
        Fetch video metadata.

        Raises:
            InvalidUrlError, MetadataUnavailableError, AgeRestrictedError,
            RegionBlockedError, UnknownRetrievalError, RetrievalFailedError
        """
        identity = derive_identity(url)
        try:
            return await self.primary.fetch_metadata(identity.source_url, identity.video_id)
        except Exception as e:
            _, message = self._classify_primary(e)

        return await self._run_fallback(
            message,
            lambda proxy: self.external.fetch_metadata(identity.source_url, proxy=proxy),
        )

    async def _primary_to_file(self, identity: VideoIdentity, kind: MediaKind, quality: str, dest_base: Path) -> Path:
        fmt = await self.primary.resolve_format(identity.source_url, identity.video_id, kind, quality)
        dest = dest_base.with_name(f"{dest_base.name}.{fmt.container}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with open(dest, "wb") as f:
                async for chunk in self.primary.stream(fmt):
                    await asyncio.to_thread(f.write, chunk)
                    written += len(chunk)
        except BaseException:
            dest.unlink(missing_ok=True)
            raise
        if written == 0:
            dest.unlink(missing_ok=True)
            raise RuntimeError("Unable to extract media: stream was empty")
        return dest

    async def fetch_media_to_file(self, url: str, kind: MediaKind, quality: str, dest_base: Path) -> MediaFetch:
        """
        Retrieve media into ``<dest_base>.<ext>``.

        The extension depends on the format the active strategy picked, so
        the returned path is the file actually written. It is verified to
        exist and be non-empty.
        """
        identity = derive_identity(url)
        try:
            path = await self._primary_to_file(identity, kind, quality, dest_base)
            logger.info(f"Retrieved {identity.video_id} with primary strategy ({path.stat().st_size} bytes)")
            return MediaFetch(path, RetrievalMethod.PRIMARY)
        except Exception as e:
            _, message = self._classify_primary(e)

        path = await self._run_fallback(
            message,
            lambda proxy: self.external.download(identity.source_url, kind, quality, dest_base, proxy=proxy),
        )
        logger.info(f"Retrieved {identity.video_id} with external tool ({path.stat().st_size} bytes)")
        return MediaFetch(path, RetrievalMethod.EXTERNAL_TOOL)
