"""REST API routes for tube-fetcher."""

from __future__ import annotations

import logging
import math
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from . import __version__
from .core.ratelimit import client_id_from_headers
from .errors import RateLimitedError, TubeFetcherError
from .models import DownloadRequest, MetadataRequest
from .services import Services

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_client_id(request: Request) -> str:
    return client_id_from_headers(request.headers)


def error_response(exc: TubeFetcherError) -> JSONResponse:
    """Render a classified failure; rate limiting gets its own body and Retry-After."""
    if isinstance(exc, RateLimitedError):
        retry_after = max(1, math.ceil(exc.reset_at - time.time()))
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.user_message,
                "remainingRequests": exc.remaining,
                "resetTime": math.ceil(exc.reset_at),
            },
            headers={"Retry-After": str(retry_after)},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.user_message})


@router.get("/health")
async def health(services: Annotated[Services, Depends(get_services)]):
    """Health check and service info."""
    return {
        "name": "tube-fetcher",
        "version": __version__,
        "status": "healthy",
        "proxies": len(services.proxy_pool),
        "endpoints": {
            "api": "/api",
            "mcp": "/mcp",
            "downloads": "/downloads",
            "docs": "/docs",
        },
    }


@router.post("/download")
async def api_download(
    body: DownloadRequest,
    services: Annotated[Services, Depends(get_services)],
    client_id: Annotated[str, Depends(get_client_id)],
):
    """
    Download a video, optionally transcoded and with a translated subtitle track.

    Request body:
    ```json
    {"url": "https://www.youtube.com/watch?v=...", "format": "mp4", "quality": "720p", "translateTo": "es"}
    ```
    """
    try:
        result = await services.pipeline.download(body, client_id)
    except TubeFetcherError as e:
        logger.error(f"Download failed for {body.url}: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Download failed for {body.url}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Download failed"})
    return result.model_dump(mode="json", by_alias=True)


@router.post("/extract")
async def api_extract(
    body: MetadataRequest,
    services: Annotated[Services, Depends(get_services)],
    client_id: Annotated[str, Depends(get_client_id)],
):
    """Fetch video metadata and available formats without downloading."""
    try:
        result = await services.pipeline.describe(body.url, client_id)
    except TubeFetcherError as e:
        logger.error(f"Extract failed for {body.url}: {e}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Extract failed for {body.url}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to extract video information"})
    return result.model_dump(mode="json", by_alias=True)
