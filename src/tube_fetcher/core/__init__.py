"""Core functionality for tube-fetcher."""

from .classify import FailureCategory, classify_failure, error_for_category
from .cleanup import cleanup_expired_files, remove_files
from .external_tool import ExternalToolClient
from .media import MediaProcessor, probe_duration, size_of
from .pipeline import DownloadPipeline, PipelineStage, slugify
from .primary import PrimaryClient, select_format
from .proxies import ProxyPool
from .ratelimit import RateLimiter, client_id_from_headers
from .retrieval import MediaFetch, RetrievalEngine, derive_identity
from .scheduler import MaintenanceScheduler
from .translation import Translator

__all__ = [
    # Retrieval
    "FailureCategory",
    "classify_failure",
    "error_for_category",
    "PrimaryClient",
    "select_format",
    "ExternalToolClient",
    "MediaFetch",
    "RetrievalEngine",
    "derive_identity",
    # Admission and proxies
    "RateLimiter",
    "client_id_from_headers",
    "ProxyPool",
    # Processing
    "MediaProcessor",
    "probe_duration",
    "size_of",
    "Translator",
    # Pipeline
    "DownloadPipeline",
    "PipelineStage",
    "slugify",
    # Cleanup
    "cleanup_expired_files",
    "remove_files",
    "MaintenanceScheduler",
]
