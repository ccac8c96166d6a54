"""Data models for tube-fetcher."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged with HTTP clients in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaKind(str, Enum):
    """What the retrieval engine should fetch."""

    VIDEO = "video"
    AUDIO = "audio"


class RetrievalMethod(str, Enum):
    """Retrieval strategy that produced the media."""

    PRIMARY = "primary"
    EXTERNAL_TOOL = "external-tool"


class VideoIdentity(BaseModel):
    """A video id and the URL it was derived from."""

    model_config = ConfigDict(frozen=True)

    video_id: str
    source_url: str


class MediaFormat(CamelModel):
    """One selectable encoding of a video."""

    identifier: str
    quality_label: str
    container: str
    has_audio: bool
    has_video: bool
    source_url: str
    height: int | None = None
    bitrate: float | None = None


class VideoMetadata(CamelModel):
    """Video details fetched fresh for a request."""

    id: str
    title: str
    duration_seconds: int = 0
    thumbnail_url: str = ""
    formats: list[MediaFormat] = Field(default_factory=list)


class ProxyRecord(BaseModel):
    """A scored outbound proxy endpoint."""

    endpoint: str
    protocol: str = "http"
    last_used_at: float = 0.0
    failure_count: int = 0
    success_count: int = 0
    consecutive_failures: int = 0

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.endpoint}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.protocol, self.endpoint)


class DownloadArtifact(CamelModel):
    """A finished, downloadable output file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    filename: str
    size_bytes: int
    format: str
    quality: str
    translated: bool = False
    download_path: str
    duration_seconds: float = 0.0


class TranslationOutcome(BaseModel):
    """Translated text and the subtitle file written for it."""

    translated_text: str
    subtitle_artifact_path: str | None = None


class DownloadRequest(CamelModel):
    """Request body for a download."""

    url: str
    format: Literal["mp4", "mp3"] = "mp4"
    quality: str = "highest"
    translate_to: str | None = None


class MetadataRequest(CamelModel):
    """Request body for a metadata lookup."""

    url: str


class DownloadResult(CamelModel):
    """Pipeline output for a successful download."""

    success: bool = True
    files: list[DownloadArtifact]
    method: RetrievalMethod
    remaining_requests: int


class MetadataResult(CamelModel):
    """Pipeline output for a metadata lookup."""

    success: bool = True
    data: VideoMetadata
    remaining_requests: int
