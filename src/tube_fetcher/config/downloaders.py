"""
Downloader configuration - URL matching, browser headers and external tool arguments.

This is "code as configuration" - modify this file to customize how requests
present themselves upstream.
"""

from __future__ import annotations

import random
import re

from ..models import MediaKind

# Known watch/short/embed URL shapes. The video id is the first group.
YOUTUBE_URL_PATTERNS = [
    re.compile(r"^https?://(?:www\.|m\.)?youtube\.com/watch\?(?:.*&)?v=([\w-]+)"),
    re.compile(r"^https?://(?:www\.)?youtu\.be/([\w-]+)"),
    re.compile(r"^https?://(?:www\.)?youtube\.com/embed/([\w-]+)"),
    re.compile(r"^https?://(?:www\.)?youtube\.com/v/([\w-]+)"),
    re.compile(r"^https?://(?:www\.|m\.)?youtube\.com/shorts/([\w-]+)"),
]

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:128.0) Gecko/20100101 Firefox/128.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36 Edg/127.0.0.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36",
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
}


def match_video_id(url: str) -> str | None:
    """
    Match URL against the known YouTube URL shapes.

    Args:
        url: Candidate URL

    Returns:
        The video id, or None if the URL is not a recognised YouTube URL
    """
    url = url.strip()
    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group(1)
    return None


def random_user_agent() -> str:
    """Pick a user-agent string at random."""
    return random.choice(USER_AGENTS)


def browser_headers(user_agent: str | None = None) -> dict[str, str]:
    """Build a browser-like header set with a rotated user-agent."""
    return {"User-Agent": user_agent or random_user_agent(), **BROWSER_HEADERS}


def format_selector(kind: MediaKind, quality: str) -> str:
    """
    Build the external tool's format selection expression.

    "highest" selects the best combined audio+video format, explicit labels
    such as "720p" cap the height, audio requests pick the best audio-only
    format.
    """
    if kind == MediaKind.AUDIO:
        return "bestaudio/best"
    height = quality_height(quality)
    if height is None:
        return "best[acodec!=none][vcodec!=none]/best"
    return (
        f"best[height<={height}][acodec!=none][vcodec!=none]"
        f"/best[height<={height}]/best"
    )


def quality_height(quality: str) -> int | None:
    """Parse a resolution label like "720p" into a pixel height."""
    match = re.fullmatch(r"(\d{3,4})p(?:\d+)?", quality.strip().lower())
    if match:
        return int(match.group(1))
    return None


def build_tool_args(
    url: str,
    *,
    player_clients: list[str],
    proxy: str | None = None,
    cookies_from_browser: str | None = None,
    dump_json: bool = False,
    output_template: str | None = None,
    selector: str | None = None,
) -> list[str]:
    """
    Build the argument list for the external media tool (without the binary).

    Args:
        url: Video URL
        player_clients: Extraction clients tried in order by the tool
        proxy: Proxy URL, if any
        cookies_from_browser: Browser name to read cookies from, if any
        dump_json: Metadata mode - print the info JSON and skip download
        output_template: Download mode - output path template
        selector: Format selection expression for download mode

    Returns:
        Argument list
    """
    args = [
        "--no-playlist",
        "--no-warnings",
        "--no-progress",
        "--user-agent", random_user_agent(),
    ]
    for name, value in BROWSER_HEADERS.items():
        args.extend(["--add-header", f"{name}:{value}"])
    args.extend(["--extractor-args", f"youtube:player_client={','.join(player_clients)}"])

    if cookies_from_browser:
        args.extend(["--cookies-from-browser", cookies_from_browser])
    if proxy:
        args.extend(["--proxy", proxy])

    if dump_json:
        args.extend(["--dump-json", "--skip-download"])
    else:
        if output_template is None:
            raise ValueError("output_template is required in download mode")
        if selector:
            args.extend(["-f", selector])
        args.extend(["--no-part", "-o", output_template])

    args.append(url)
    return args
