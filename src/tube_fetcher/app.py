"""FastAPI application for tube-fetcher."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from . import __version__
from .api import router as api_router
from .config import ensure_dirs, get_download_dir, get_log_level
from .core.scheduler import MaintenanceScheduler
from .server import create_mcp
from .services import Services, build_services


def create_app(services: Services | None = None) -> FastAPI:
    """Create the application around a service graph built once per process."""
    ensure_dirs()
    services = services or build_services()
    mcp = create_mcp(services)
    scheduler = MaintenanceScheduler(services.proxy_pool)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        ensure_dirs()

        await scheduler.start()

        # Initialize MCP session manager (required for streamable HTTP)
        async with mcp.session_manager.run():
            yield

        await scheduler.stop()

    app = FastAPI(
        title="tube-fetcher",
        description="YouTube downloads with fallback retrieval, transcoding and subtitle translation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    # Include REST API routes
    app.include_router(api_router, prefix="/api", tags=["API"])

    # Finished artifacts
    app.mount("/downloads", StaticFiles(directory=get_download_dir()), name="downloads")

    # Mount MCP server routes (streamable HTTP only, provides /mcp endpoint)
    app.mount("/", mcp.streamable_http_app())

    return app


def main():
    """Run the server."""
    import uvicorn

    uvicorn.run(
        "tube_fetcher.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level=get_log_level(),
    )


if __name__ == "__main__":
    main()
