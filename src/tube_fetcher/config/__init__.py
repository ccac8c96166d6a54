"""Configuration module for tube-fetcher."""

from .settings import (
    ensure_dirs,
    get_cleanup_config,
    get_config_dir,
    get_config_file,
    get_data_dir,
    get_download_dir,
    get_log_level,
    get_media_config,
    get_proxy_config,
    get_proxy_file,
    get_rate_limit_config,
    get_retrieval_config,
    get_static_proxy,
    get_temp_dir,
    get_translation_api_key,
    get_translation_config,
    load_config,
    save_config,
)
from .downloaders import browser_headers, build_tool_args, format_selector, match_video_id

__all__ = [
    "ensure_dirs",
    "get_cleanup_config",
    "get_config_dir",
    "get_config_file",
    "get_data_dir",
    "get_download_dir",
    "get_log_level",
    "get_media_config",
    "get_proxy_config",
    "get_proxy_file",
    "get_rate_limit_config",
    "get_retrieval_config",
    "get_static_proxy",
    "get_temp_dir",
    "get_translation_api_key",
    "get_translation_config",
    "load_config",
    "save_config",
    "browser_headers",
    "build_tool_args",
    "format_selector",
    "match_video_id",
]
