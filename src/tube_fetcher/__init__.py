"""YouTube download service with fallback retrieval, proxy rotation and translation."""

__version__ = "0.1.0"
