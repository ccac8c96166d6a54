"""Classification of retrieval failures into a closed set of categories."""

from __future__ import annotations

import re
from enum import Enum

from ..errors import (
    AgeRestrictedError,
    MetadataUnavailableError,
    RegionBlockedError,
    TubeFetcherError,
    UnknownRetrievalError,
    UpstreamBlockedError,
    UpstreamChangedError,
)


class FailureCategory(str, Enum):
    """Why a retrieval attempt failed."""

    BOT_DETECTION = "bot_detection"
    PARSER_BREAKAGE = "parser_breakage"
    UNAVAILABLE = "unavailable"
    AGE_RESTRICTED = "age_restricted"
    REGION_BLOCKED = "region_blocked"
    UNKNOWN = "unknown"

    @property
    def fallback_worthy(self) -> bool:
        """Whether switching to the external tool may get past this failure."""
        return self in (FailureCategory.BOT_DETECTION, FailureCategory.PARSER_BREAKAGE)


# Checked in order: terminal conditions first, since upstream messages for
# age gates also mention signing in.
_MARKERS: list[tuple[FailureCategory, tuple[str, ...]]] = [
    (FailureCategory.AGE_RESTRICTED, (
        "age-restricted", "age restricted", "age-gated", "confirm your age",
        "inappropriate for some users",
    )),
    (FailureCategory.REGION_BLOCKED, (
        "not available in your country", "region", "geo-restrict", "geo restrict",
        "blocked it in your country",
    )),
    (FailureCategory.UNAVAILABLE, (
        "private", "video unavailable", "has been removed", "been deleted",
        "no longer available", "does not exist", "account associated with this video has been terminated",
    )),
    (FailureCategory.BOT_DETECTION, (
        "sign in to confirm", "not a bot", "captcha", "bot", "403", "429",
        "forbidden", "too many requests", "unusual traffic", "blocked",
    )),
    (FailureCategory.PARSER_BREAKAGE, (
        "unable to extract", "failed to extract", "could not find", "parse",
        "signature", "nsig", "no video formats", "player response", "decipher",
    )),
]

_ERRORS: dict[FailureCategory, type[TubeFetcherError]] = {
    FailureCategory.BOT_DETECTION: UpstreamBlockedError,
    FailureCategory.PARSER_BREAKAGE: UpstreamChangedError,
    FailureCategory.UNAVAILABLE: MetadataUnavailableError,
    FailureCategory.AGE_RESTRICTED: AgeRestrictedError,
    FailureCategory.REGION_BLOCKED: RegionBlockedError,
    FailureCategory.UNKNOWN: UnknownRetrievalError,
}


# "ERROR: [youtube] <id>: " prefixes carry the video id, which must not be matched.
_PREFIX = re.compile(r"^(?:ERROR:\s*)?(?:\[[\w:]+\]\s*[\w-]+:\s*)?")


def classify_failure(message: str) -> FailureCategory:
    """Map an upstream error message to a failure category."""
    lowered = _PREFIX.sub("", message.strip()).lower()
    for category, markers in _MARKERS:
        if any(marker in lowered for marker in markers):
            return category
    return FailureCategory.UNKNOWN


def error_for_category(category: FailureCategory, message: str) -> TubeFetcherError:
    """Build the taxonomy error for a category, keeping the upstream message."""
    return _ERRORS[category](message)
