"""
Douyin share link detection.

Finds a share link in free text and derives a stable content id from it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)

# Any subdomain of douyin.com / iesdouyin.com, so format drift on the share side
# (v., www., m., ...) does not break detection.
LINK_PATTERN = re.compile(
    r'https?://(?:[\w-]+\.)*(?:ies)?douyin\.com(?!\.?[\w-])(?:/[^\s<>"\'，。！？]*)?',
    re.IGNORECASE,
)

_VIDEO_PATH = re.compile(r'/(?:share/)?video/([A-Za-z0-9_-]+)')
_ID_CHARS = re.compile(r'^[A-Za-z0-9_-]+$')
_TRAILING = '.,;:!?)]}'


@dataclass(frozen=True)
class ShareLink:
    """A share link found in a message."""
    url: str
    content_id: Optional[str] = None


def extract_content_id(url: str) -> Optional[str]:
    """
    Derive the content id from a share link.

    Checked in order: a /video/<id> path, a modal_id query parameter, and the
    first path segment of a v.douyin.com short link.

    Args:
        url: Share link

    Returns:
        Content id, or None if no known link shape matched
    """
    parts = urlsplit(url)

    match = _VIDEO_PATH.search(parts.path)
    if match:
        return match.group(1)

    modal_ids = parse_qs(parts.query).get('modal_id')
    if modal_ids and _ID_CHARS.match(modal_ids[0]):
        return modal_ids[0]

    host = (parts.hostname or '').lower()
    if host == 'v.douyin.com':
        segments = [s for s in parts.path.split('/') if s]
        if segments and _ID_CHARS.match(segments[0]):
            return segments[0]

    return None


def extract_share_link(text: Optional[str]) -> Optional[ShareLink]:
    """
    Find the first Douyin share link in a message.

    Args:
        text: Message text

    Returns:
        ShareLink, or None if the text holds no Douyin link
    """
    if not text:
        return None

    match = LINK_PATTERN.search(text)
    if not match:
        return None

    url = match.group(0).rstrip(_TRAILING)
    content_id = extract_content_id(url)

    if content_id:
        logger.info(f"[LINK] ✓ Share link: {url} (content id: {content_id})")
    else:
        logger.warning(f"[LINK] Share link without a recognizable id: {url}, result will not be cached")

    return ShareLink(url=url, content_id=content_id)


__all__ = ['LINK_PATTERN', 'ShareLink', 'extract_content_id', 'extract_share_link']
