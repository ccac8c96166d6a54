"""Exception taxonomy for tube-fetcher.

Every error carries a ``user_message``: many internal failures map onto the
same handful of human-readable messages returned to HTTP clients.
"""

from __future__ import annotations

RETRIEVAL_FAILED = "Could not download this video right now. Please try again later."
PROCESSING_FAILED = "Failed to process the downloaded media."


class TubeFetcherError(Exception):
    """Base class for all classified failures."""

    status_code = 500
    user_message = "Download failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


class InvalidUrlError(TubeFetcherError):
    status_code = 400
    user_message = "Invalid YouTube URL"


class MetadataUnavailableError(TubeFetcherError):
    user_message = "Video is unavailable or private"


class AgeRestrictedError(TubeFetcherError):
    user_message = "Video is age-restricted"


class RegionBlockedError(TubeFetcherError):
    user_message = "Video is not available in your region"


class UpstreamBlockedError(TubeFetcherError):
    user_message = RETRIEVAL_FAILED


class UpstreamChangedError(TubeFetcherError):
    user_message = RETRIEVAL_FAILED


class UnknownRetrievalError(TubeFetcherError):
    user_message = "Failed to extract video information"


class RetrievalFailedError(TubeFetcherError):
    """Both retrieval strategies failed."""

    user_message = RETRIEVAL_FAILED

    def __init__(self, primary_error: str, fallback_error: str):
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(f"Primary: {primary_error} | External tool: {fallback_error}")


class OutputMissingError(TubeFetcherError):
    user_message = RETRIEVAL_FAILED


class ParseError(OutputMissingError):
    """External tool output did not match the expected schema."""


class EmptyOutputError(TubeFetcherError):
    user_message = RETRIEVAL_FAILED


class ToolTimeoutError(TubeFetcherError):
    status_code = 504
    user_message = "The download took too long and was cancelled"


class CodecError(TubeFetcherError):
    user_message = PROCESSING_FAILED

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class TranslationUnavailableError(TubeFetcherError):
    user_message = "Translation is not configured"


class TranscriptionError(TubeFetcherError):
    user_message = "Translation failed"


class GenerationError(TubeFetcherError):
    user_message = "Translation failed"


class RateLimitedError(TubeFetcherError):
    status_code = 429
    user_message = "Too many requests. Please wait before trying again."

    def __init__(self, remaining: int, reset_at: float):
        self.remaining = remaining
        self.reset_at = reset_at
        super().__init__(self.user_message)
