"""Process-lifetime state shared by the HTTP and MCP surfaces."""

from __future__ import annotations

from dataclasses import dataclass

from .config import (
    get_download_dir,
    get_media_config,
    get_proxy_config,
    get_proxy_file,
    get_rate_limit_config,
    get_retrieval_config,
    get_static_proxy,
    get_temp_dir,
    get_translation_api_key,
    get_translation_config,
)
from .core.external_tool import ExternalToolClient
from .core.media import MediaProcessor
from .core.pipeline import DownloadPipeline
from .core.primary import PrimaryClient
from .core.proxies import ProxyPool
from .core.ratelimit import RateLimiter
from .core.retrieval import RetrievalEngine
from .core.translation import Translator


@dataclass
class Services:
    """The rate limiter, proxy pool and pipeline owned by one process."""

    rate_limiter: RateLimiter
    proxy_pool: ProxyPool
    pipeline: DownloadPipeline


def build_services() -> Services:
    """Build the service graph from the current configuration."""
    rate_limiter = RateLimiter.from_config(get_rate_limit_config())
    proxy_pool = ProxyPool.from_config(get_proxy_file(), get_proxy_config())

    retrieval = get_retrieval_config()
    engine = RetrievalEngine(
        primary=PrimaryClient(network_timeout=retrieval["network_timeout_seconds"]),
        external=ExternalToolClient(
            binary=retrieval["external_tool"],
            timeout=retrieval["tool_timeout_seconds"],
            player_clients=retrieval["player_clients"],
            cookies_from_browser=retrieval["cookies_from_browser"],
        ),
        proxy_pool=proxy_pool,
        static_proxy=get_static_proxy(),
    )

    media = get_media_config()
    translation = get_translation_config()
    pipeline = DownloadPipeline(
        rate_limiter=rate_limiter,
        engine=engine,
        media=MediaProcessor(
            binary=media["ffmpeg_binary"],
            timeout=media["timeout_seconds"],
            audio_bitrate=media["audio_bitrate"],
        ),
        translator=Translator(
            api_key=get_translation_api_key(),
            transcription_model=translation["transcription_model"],
            translation_model=translation["translation_model"],
            timeout=translation["timeout_seconds"],
        ),
        temp_dir=get_temp_dir(),
        download_dir=get_download_dir(),
    )
    return Services(rate_limiter=rate_limiter, proxy_pool=proxy_pool, pipeline=pipeline)
