"""
Video URL normalization utilities

Provides canonical URL normalization for duplicate detection of
proof-of-work video submissions.
"""
import hashlib
from typing import Optional
from urllib.parse import urlparse, parse_qs

# Platform prefixes used in the canonical "platform:id" form
YOUTUBE = 'youtube'
TWITTER = 'twitter'
TIKTOK = 'tiktok'
INSTAGRAM = 'instagram'
OTHER = 'other'

PLATFORMS = (YOUTUBE, TWITTER, TIKTOK, INSTAGRAM)

_YOUTUBE_PATH_MARKERS = ('embed', 'v', 'shorts', 'live')
_INSTAGRAM_PATH_MARKERS = ('p', 'reel', 'tv')


def _strip_host(netloc: str) -> str:
    host = netloc.lower().split(':')[0]
    for prefix in ('www.', 'm.', 'mobile.'):
        if host.startswith(prefix):
            host = host[len(prefix):]
    return host


def _clean_id(raw: Optional[str]) -> Optional[str]:
    """Drop trailing slashes and anything after & or ? from an extracted id"""
    if not raw:
        return None
    cleaned = raw.split('&')[0].split('?')[0].strip('/')
    return cleaned or None


def _segment_after(parts: list, marker: str) -> Optional[str]:
    if marker in parts:
        idx = parts.index(marker)
        if idx + 1 < len(parts):
            return parts[idx + 1]
    return None


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith('.' + domain)


def detect_platform(url: str) -> str:
    """
    Detect the video platform of a URL.

    Returns:
        One of 'youtube', 'twitter', 'tiktok', 'instagram', 'other'
    """
    host = _strip_host(urlparse((url or '').strip().lower()).netloc)
    if _host_matches(host, 'youtube.com') or host == 'youtu.be':
        return YOUTUBE
    if _host_matches(host, 'twitter.com') or _host_matches(host, 'x.com'):
        return TWITTER
    if _host_matches(host, 'tiktok.com'):
        return TIKTOK
    if _host_matches(host, 'instagram.com'):
        return INSTAGRAM
    return OTHER


def _platform_id(platform: str, host: str, path: str, query: str) -> Optional[str]:
    parts = [p for p in path.split('/') if p]

    if platform == YOUTUBE:
        if host == 'youtu.be':
            return _clean_id(parts[0]) if parts else None
        if parts and parts[0] == 'watch':
            values = parse_qs(query).get('v')
            return _clean_id(values[0]) if values else None
        for marker in _YOUTUBE_PATH_MARKERS:
            if parts and parts[0] == marker:
                return _clean_id(_segment_after(parts, marker))
        return None

    if platform == TWITTER:
        return _clean_id(_segment_after(parts, 'status'))

    if platform == TIKTOK:
        if host == 'vm.tiktok.com':
            return _clean_id(parts[0]) if parts else None
        return _clean_id(_segment_after(parts, 'video'))

    if platform == INSTAGRAM:
        if len(parts) >= 2 and parts[0] in _INSTAGRAM_PATH_MARKERS:
            return _clean_id(parts[1])
        return None

    return None


def normalize_video_url(url: str) -> str:
    """
    Normalize a video URL to canonical form for deduplication.

    Known platforms collapse to "platform:id":
    - YouTube: watch?v=ID, youtu.be/ID, /shorts/ID, /embed/ID, /v/ID, /live/ID
    - Twitter/X: /<user>/status/ID
    - TikTok: /@user/video/ID, vm.tiktok.com/ID
    - Instagram: /p/ID, /reel/ID, /tv/ID

    Anything else becomes https://host/path with:
    - case folded
    - www. prefix removed
    - query string and fragment removed
    - trailing slash removed
    - http and https treated as the same scheme

    Args:
        url: The URL to normalize

    Returns:
        Canonical string (input trimmed and lowercased if it is not a URL)
    """
    cleaned = (url or '').strip().lower()
    parsed = urlparse(cleaned)
    if not parsed.netloc:
        return cleaned

    host = _strip_host(parsed.netloc)
    platform = detect_platform(cleaned)
    if platform != OTHER:
        video_id = _platform_id(platform, host, parsed.path, parsed.query)
        if video_id:
            return f"{platform}:{video_id}"

    path = parsed.path.rstrip('/')
    return f"https://{host}{path}"


def video_url_hash(url: str) -> str:
    """SHA-256 hex digest of the normalized URL (the global duplicate key)"""
    normalized = normalize_video_url(url)
    if not normalized:
        raise ValueError("Video URL is required")
    return hashlib.sha256(normalized.encode('utf-8')).hexdigest()


def extract_video_id(url: str) -> Optional[str]:
    """Platform video id, or None for unrecognized platforms"""
    normalized = normalize_video_url(url)
    platform, sep, video_id = normalized.partition(':')
    if sep and platform in PLATFORMS:
        return video_id
    return None
