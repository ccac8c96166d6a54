"""MCP server for tube-fetcher using FastMCP."""

from __future__ import annotations

from typing import Literal

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from .errors import TubeFetcherError
from .models import DownloadRequest
from .services import Services

# MCP callers are not identifiable by proxy headers and share one quota.
MCP_CLIENT_ID = "mcp"


def create_mcp(services: Services) -> FastMCP:
    """Create the FastMCP server with tools bound to the given services."""
    # Disable DNS rebinding protection to allow any Host header (for Docker/reverse proxy)
    mcp = FastMCP(
        "tube-fetcher",
        transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
    )

    @mcp.tool(name="tube_fetcher_download")
    async def tool_download(
        url: str,
        format: Literal["mp4", "mp3"] = "mp4",
        quality: str = "highest",
        translate_to: str | None = None,
    ) -> dict:
        """
        Download a YouTube video as MP4 or its audio as MP3.

        Use quality "highest" to keep the original encoding, or a resolution
        label such as "1080p", "720p", "480p" or "360p" to transcode.
        With translate_to (e.g. "es"), an extra MP4 with a translated
        subtitle track is produced when translation is configured.

        Returns the produced files (primary first) and the retrieval method.

        Args:
            url: YouTube watch, short, embed or youtu.be URL
            format: "mp4" or "mp3"
            quality: "highest" or a resolution label
            translate_to: Target language code for subtitles (optional)
        """
        request = DownloadRequest(url=url, format=format, quality=quality, translate_to=translate_to)
        try:
            result = await services.pipeline.download(request, MCP_CLIENT_ID)
        except TubeFetcherError as e:
            return {"success": False, "error": e.user_message}
        return result.model_dump(mode="json", by_alias=True)

    @mcp.tool(name="tube_fetcher_video_info")
    async def tool_video_info(url: str) -> dict:
        """
        Get title, duration, thumbnail and available formats of a YouTube video
        without downloading it.

        Args:
            url: YouTube watch, short, embed or youtu.be URL
        """
        try:
            result = await services.pipeline.describe(url, MCP_CLIENT_ID)
        except TubeFetcherError as e:
            return {"success": False, "error": e.user_message}
        return result.model_dump(mode="json", by_alias=True)

    return mcp
