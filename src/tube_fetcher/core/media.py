"""Media processing with the ffmpeg command-line tool."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import av

from ..errors import CodecError, ToolTimeoutError

logger = logging.getLogger(__name__)

# Quality label -> (frame size, video bitrate)
VIDEO_QUALITY_TABLE = {
    "1080p": ("1920x1080", "4000k"),
    "720p": ("1280x720", "2000k"),
    "480p": ("854x480", "1000k"),
    "360p": ("640x360", "600k"),
}
DEFAULT_VIDEO_QUALITY = "720p"


def video_settings(quality_label: str) -> tuple[str, str]:
    """Frame size and bitrate for a quality label, defaulting to the mid tier."""
    return VIDEO_QUALITY_TABLE.get(quality_label, VIDEO_QUALITY_TABLE[DEFAULT_VIDEO_QUALITY])


def size_of(path: str | Path) -> int:
    """File size in bytes, or 0 if the path cannot be statted."""
    try:
        return Path(path).stat().st_size
    except (OSError, ValueError):
        return 0


def probe_duration(path: str | Path) -> float:
    """Container duration in seconds, or 0.0 if the file cannot be probed."""
    try:
        with av.open(str(path)) as container:
            if container.duration is None:
                return 0.0
            return container.duration / av.time_base
    except Exception as e:
        logger.debug(f"Could not probe duration of {path}: {e}")
        return 0.0


class MediaProcessor:
    """
    Runs one ffmpeg process per operation.

    A zero exit status is completion; anything else becomes
    ``CodecError(operation, detail)`` with the last line of ffmpeg's stderr.
    """

    def __init__(self, binary: str = "ffmpeg", timeout: float = 900, audio_bitrate: str = "320k"):
        self.binary = binary
        self.timeout = timeout
        self.audio_bitrate = audio_bitrate

    async def _run(self, operation: str, args: list[str], output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [self.binary, "-y", "-hide_banner", "-loglevel", "error", *args, str(output_path)]
        logger.debug(f"{operation}: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CodecError(operation, f"{self.binary} not found") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            output_path.unlink(missing_ok=True)
            raise ToolTimeoutError(f"{operation} timed out after {self.timeout}s")

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="ignore").strip()
            detail = message.splitlines()[-1] if message else f"exit code {process.returncode}"
            output_path.unlink(missing_ok=True)
            raise CodecError(operation, detail)
        return output_path

    async def transcode_audio(self, input_path: Path, output_path: Path) -> Path:
        """Encode to MP3 at the configured bitrate."""
        return await self._run(
            "transcode_audio",
            ["-i", str(input_path), "-vn", "-c:a", "libmp3lame", "-b:a", self.audio_bitrate, "-f", "mp3"],
            output_path,
        )

    async def transcode_video(self, input_path: Path, output_path: Path, quality_label: str) -> Path:
        """Encode to H.264/AAC MP4 at the size and bitrate of the quality tier."""
        size, bitrate = video_settings(quality_label)
        return await self._run(
            "transcode_video",
            [
                "-i", str(input_path),
                "-c:v", "libx264", "-b:v", bitrate, "-s", size,
                "-c:a", "aac",
                "-movflags", "+faststart",
                "-f", "mp4",
            ],
            output_path,
        )

    async def extract_audio_track(self, input_path: Path, output_path: Path) -> Path:
        """Extract the audio track as 16-bit PCM WAV."""
        return await self._run(
            "extract_audio_track",
            ["-i", str(input_path), "-vn", "-c:a", "pcm_s16le", "-f", "wav"],
            output_path,
        )

    async def burn_subtitles(self, video_path: Path, subtitle_path: Path, output_path: Path) -> Path:
        """Add the subtitle file as a selectable track; video and audio are copied."""
        return await self._run(
            "burn_subtitles",
            [
                "-i", str(video_path),
                "-i", str(subtitle_path),
                "-map", "0:v:0", "-map", "0:a:0", "-map", "1:s:0",
                "-c:v", "copy", "-c:a", "copy", "-c:s", "mov_text",
            ],
            output_path,
        )
