"""Basic settings and directory management."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "tube-fetcher"


def get_config_dir() -> Path:
    """Get the configuration directory."""
    return Path(os.environ.get("TUBE_FETCHER_CONFIG_DIR", user_config_dir(APP_NAME)))


def get_data_dir() -> Path:
    """Get the data directory for the persisted proxy pool."""
    return Path(os.environ.get("TUBE_FETCHER_DATA_DIR", user_data_dir(APP_NAME)))


def get_temp_dir() -> Path:
    """Get the directory for per-request temporary files."""
    default = get_data_dir() / "tmp"
    return Path(os.environ.get("TUBE_FETCHER_TEMP_DIR", str(default)))


def get_download_dir() -> Path:
    """Get the directory finished artifacts are written to."""
    default = Path.home() / "Downloads" / APP_NAME
    return Path(os.environ.get("TUBE_FETCHER_DOWNLOAD_DIR", str(default)))


def get_config_file() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


def get_proxy_file() -> Path:
    """Get the path of the persisted proxy list."""
    return get_data_dir() / "proxies.json"


def load_config() -> dict[str, Any]:
    """Load configuration from file."""
    config: dict[str, Any] = {}
    config_file = get_config_file()
    if config_file.exists():
        with open(config_file) as f:
            config = json.load(f)
    return config


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        json.dump(config, f, indent=2)


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
    get_temp_dir().mkdir(parents=True, exist_ok=True)
    get_download_dir().mkdir(parents=True, exist_ok=True)


def _section(name: str, defaults: dict[str, Any]) -> dict[str, Any]:
    """Merge a config file section over its defaults."""
    config = load_config()
    return {**defaults, **config.get(name, {})}


DEFAULT_RATE_LIMIT_CONFIG = {
    "window_seconds": 60,
    "max_requests": 10,
    "sweep_probability": 0.01,
}

DEFAULT_PROXY_CONFIG = {
    "update_interval_seconds": 60 * 60,
    "sources": [
        "https://api.proxyscrape.com/v2/?request=getproxies&protocol=http&timeout=10000&country=all&ssl=all&anonymity=all",
        "https://raw.githubusercontent.com/TheSpeedX/PROXY-List/master/http.txt",
        "https://raw.githubusercontent.com/ShiftyTR/Proxy-List/master/http.txt",
    ],
    "default_protocol": "http",
    "fetch_timeout_seconds": 5,
    "eviction_threshold": 5,  # consecutive failures, 0 disables
}

DEFAULT_RETRIEVAL_CONFIG = {
    "external_tool": "yt-dlp",
    "tool_timeout_seconds": 600,
    "network_timeout_seconds": 30,
    "player_clients": ["default", "web_safari", "android_vr", "tv"],
    "cookies_from_browser": None,
}

DEFAULT_MEDIA_CONFIG = {
    "ffmpeg_binary": "ffmpeg",
    "timeout_seconds": 900,
    "audio_bitrate": "320k",
}

DEFAULT_TRANSLATION_CONFIG = {
    "transcription_model": "whisper-1",
    "translation_model": "gpt-4o-mini",
    "timeout_seconds": 120,
}

DEFAULT_CLEANUP_CONFIG = {
    "enabled": True,
    "retention_days": 1,
    "schedule": "0 * * * *",  # Every hour
}


def get_rate_limit_config() -> dict[str, Any]:
    """Get rate limiter configuration with defaults."""
    return _section("rate_limit", DEFAULT_RATE_LIMIT_CONFIG)


def get_proxy_config() -> dict[str, Any]:
    """Get proxy pool configuration with defaults."""
    return _section("proxies", DEFAULT_PROXY_CONFIG)


def get_retrieval_config() -> dict[str, Any]:
    """Get retrieval engine configuration with defaults."""
    return _section("retrieval", DEFAULT_RETRIEVAL_CONFIG)


def get_media_config() -> dict[str, Any]:
    """Get media processing configuration with defaults.

    ``TUBE_FETCHER_FFMPEG`` overrides the codec binary.
    """
    config = _section("media", DEFAULT_MEDIA_CONFIG)
    binary = os.environ.get("TUBE_FETCHER_FFMPEG")
    if binary:
        config["ffmpeg_binary"] = binary
    return config


def get_translation_config() -> dict[str, Any]:
    """Get translation configuration with defaults."""
    return _section("translation", DEFAULT_TRANSLATION_CONFIG)


def get_cleanup_config() -> dict[str, Any]:
    """Get cleanup configuration with defaults."""
    return _section("cleanup", DEFAULT_CLEANUP_CONFIG)


def get_translation_api_key() -> str | None:
    """Get the translation credential, or None if unset."""
    return os.environ.get("OPENAI_API_KEY") or None


def get_static_proxy() -> str | None:
    """Get the environment-configured proxy used when the pool is empty."""
    return os.environ.get("TUBE_FETCHER_PROXY_URL") or os.environ.get("PROXY_URL") or None


def get_log_level() -> str:
    """Get the server log level."""
    return os.environ.get("TUBE_FETCHER_LOG_LEVEL", "info").lower()
