"""Classify external video URLs into embeddable player URLs and display titles."""

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import PurePosixPath
from urllib.parse import parse_qs, quote, urlparse

UNTITLED = "Untitled Video"

_YOUTUBE_PATH_ID = re.compile(r"^/(?:embed|shorts|live|v)/([\w-]+)")


@dataclass(frozen=True)
class Classification:
    """How a link should be presented in the library."""

    platform: str
    embed_url: str | None
    is_embeddable: bool
    title: str


def classify(url: str, parent_host: str = "localhost") -> Classification:
    """Map an external video URL to platform, embed URL and display title.

    Never raises: anything that does not parse as an absolute URL is
    reported as an ``External`` link with no embed URL.

    Args:
        url: The URL as registered by the user.
        parent_host: Hostname of the embedding page (Twitch requires it).
    """
    return _classify(url.strip() if isinstance(url, str) else "", parent_host)


@lru_cache(maxsize=1024)
def _classify(url: str, parent_host: str) -> Classification:
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError:
        return _fallback(url)

    if not parsed.scheme or not host:
        return _fallback(url)

    if "youtube.com" in host or "youtu.be" in host:
        return _platform(url, "YouTube", host, _youtube_id(parsed, host), "https://www.youtube.com/embed/{id}")

    if "yandex" in host:
        video_id = _last_segment(parsed.path)
        title = f"Yandex video {video_id}" if video_id else _host_title(host)
        return Classification(platform="Yandex", embed_url=url, is_embeddable=False, title=title)

    if "vimeo.com" in host:
        return _platform(url, "Vimeo", host, _last_segment(parsed.path), "https://player.vimeo.com/video/{id}")

    if "dailymotion.com" in host:
        return _platform(
            url, "Dailymotion", host, _dailymotion_id(parsed.path),
            "https://www.dailymotion.com/embed/video/{id}",
        )

    if "twitch.tv" in host:
        template = "https://player.twitch.tv/?video={id}&parent=" + quote(parent_host, safe="")
        return _platform(url, "Twitch", host, _segment_after(parsed.path, "videos"), template)

    stem = _stem(_last_segment(parsed.path))
    return Classification(
        platform="External",
        embed_url=None,
        is_embeddable=True,
        title=stem or _host_title(host),
    )


def _platform(url: str, platform: str, host: str, video_id: str, template: str) -> Classification:
    """Build a classification for a recognised platform; unknown ids keep the original URL."""
    if not video_id:
        return Classification(platform=platform, embed_url=url, is_embeddable=True, title=_host_title(host))
    return Classification(
        platform=platform,
        embed_url=template.format(id=video_id),
        is_embeddable=True,
        title=f"{platform} video {video_id}",
    )


def _fallback(url: str) -> Classification:
    name = _stem(_last_segment(url))
    return Classification(platform="External", embed_url=None, is_embeddable=True, title=name or UNTITLED)


def _youtube_id(parsed, host: str) -> str:
    if "youtu.be" in host:
        return _first_segment(parsed.path)
    video_id = parse_qs(parsed.query).get("v", [""])[0]
    if video_id:
        return video_id
    match = _YOUTUBE_PATH_ID.match(parsed.path)
    return match.group(1) if match else ""


def _dailymotion_id(path: str) -> str:
    slug = _segment_after(path, "video")
    return slug.split("_", 1)[0]


def _segment_after(path: str, marker: str) -> str:
    segments = [s for s in path.split("/") if s]
    if marker in segments:
        idx = segments.index(marker)
        if idx + 1 < len(segments):
            return segments[idx + 1]
    return ""


def _first_segment(path: str) -> str:
    segments = [s for s in path.split("/") if s]
    return segments[0] if segments else ""


def _last_segment(path: str) -> str:
    segments = [s for s in path.split("/") if s]
    return segments[-1] if segments else ""


def _host_title(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def _stem(segment: str) -> str:
    """File name without its final extension."""
    return PurePosixPath(segment).stem.strip() if segment else ""
