"""Fallback retrieval strategy: the yt-dlp command-line tool as a subprocess."""

from __future__ import annotations

import asyncio
import glob
import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ValidationError

from ..config.downloaders import build_tool_args, format_selector
from ..errors import EmptyOutputError, OutputMissingError, ParseError, ToolTimeoutError
from ..models import MediaFormat, MediaKind, VideoMetadata

logger = logging.getLogger(__name__)

# Leftovers of an interrupted download, never the produced file.
_PARTIAL_SUFFIXES = {".part", ".ytdl", ".temp"}


class ToolFormat(BaseModel):
    """One entry of the tool's ``formats`` list."""

    format_id: str
    ext: str | None = None
    url: str | None = None
    vcodec: str | None = None
    acodec: str | None = None
    format_note: str | None = None
    resolution: str | None = None
    height: int | None = None
    tbr: float | None = None
    abr: float | None = None


class ToolVideoInfo(BaseModel):
    """The subset of ``--dump-json`` output the service relies on."""

    id: str
    title: str
    duration: float | None = None
    thumbnail: str | None = None
    formats: list[ToolFormat] = []

    def to_metadata(self) -> VideoMetadata:
        formats = []
        for f in self.formats:
            has_video = f.vcodec not in (None, "none")
            has_audio = f.acodec not in (None, "none")
            if not f.url or not (has_video or has_audio):
                continue
            formats.append(MediaFormat(
                identifier=f.format_id,
                quality_label=f.format_note or f.resolution or "unknown",
                container=f.ext or "unknown",
                has_audio=has_audio,
                has_video=has_video,
                source_url=f.url,
                height=f.height,
                bitrate=f.tbr or f.abr,
            ))
        return VideoMetadata(
            id=self.id,
            title=self.title,
            duration_seconds=int(self.duration or 0),
            thumbnail_url=self.thumbnail or "",
            formats=formats,
        )


@dataclass
class ToolResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def error_text(self) -> str:
        text = (self.stderr or self.stdout).strip()
        return text.splitlines()[-1] if text else f"exit code {self.returncode}"


class ToolFailedError(Exception):
    """The external tool exited non-zero."""

    def __init__(self, result: ToolResult):
        self.result = result
        super().__init__(result.error_text)


def decode_info(stdout: str) -> VideoMetadata:
    """Strictly decode ``--dump-json`` output."""
    text = stdout.strip()
    if not text:
        raise OutputMissingError("External tool printed no metadata")
    # One JSON document per line; the first belongs to the requested video.
    first = text.splitlines()[0]
    try:
        return ToolVideoInfo.model_validate_json(first).to_metadata()
    except ValidationError as e:
        raise ParseError(f"Unexpected metadata from external tool: {e.error_count()} invalid fields") from e


def discard_outputs(output_base: Path) -> None:
    """Delete whatever the tool wrote under ``<output_base>.*``, partials included."""
    for path in output_base.parent.glob(f"{glob.escape(output_base.name)}.*"):
        if path.is_file():
            path.unlink(missing_ok=True)


def find_output(output_base: Path) -> Path:
    """
    Find the file the tool produced for an output base path.

    The tool picks the extension, so candidates are ``<base>.*``.
    """
    candidates = [
        p for p in output_base.parent.glob(f"{output_base.name}.*")
        if p.is_file() and p.suffix not in _PARTIAL_SUFFIXES
    ]
    if not candidates:
        raise OutputMissingError(f"External tool produced no file for {output_base.name}")
    produced = max(candidates, key=lambda p: p.stat().st_size)
    if produced.stat().st_size == 0:
        raise EmptyOutputError(f"External tool produced an empty file: {produced.name}")
    return produced


class ExternalToolClient:
    """Runs the media tool with anti-bot arguments and an optional proxy."""

    def __init__(
        self,
        binary: str = "yt-dlp",
        timeout: float = 600,
        player_clients: list[str] | None = None,
        cookies_from_browser: str | None = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self.player_clients = player_clients or ["default"]
        self.cookies_from_browser = cookies_from_browser

    async def run(self, args: list[str]) -> ToolResult:
        """Run the tool to completion, killing it if the timeout expires."""
        logger.debug(f"Running {self.binary} {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ToolFailedError(ToolResult(127, "", f"{self.binary} not found: {e}")) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ToolTimeoutError(f"{self.binary} timed out after {self.timeout}s")

        result = ToolResult(
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
        if result.returncode != 0:
            raise ToolFailedError(result)
        return result

    async def fetch_metadata(self, url: str, proxy: str | None = None) -> VideoMetadata:
        args = build_tool_args(
            url,
            player_clients=self.player_clients,
            proxy=proxy,
            cookies_from_browser=self.cookies_from_browser,
            dump_json=True,
        )
        result = await self.run(args)
        return decode_info(result.stdout)

    async def download(
        self,
        url: str,
        kind: MediaKind,
        quality: str,
        output_base: Path,
        proxy: str | None = None,
    ) -> Path:
        """Download to ``<output_base>.<ext>`` and return the produced file."""
        output_base.parent.mkdir(parents=True, exist_ok=True)
        args = build_tool_args(
            url,
            player_clients=self.player_clients,
            proxy=proxy,
            cookies_from_browser=self.cookies_from_browser,
            output_template=f"{output_base}.%(ext)s",
            selector=format_selector(kind, quality),
        )
        try:
            await self.run(args)
        except (ToolFailedError, ToolTimeoutError):
            discard_outputs(output_base)
            raise
        return find_output(output_base)
