"""
Video downloader for the Douyin pipeline.

Downloads a direct video URL into memory and stores it in the video cache.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp

from douyin_pipeline.cache import VideoCache
from douyin_pipeline.exceptions import FetchError

logger = logging.getLogger(__name__)


class MediaFetcher:
    """Downloads resolved videos into the cache."""

    def __init__(self, cache: VideoCache, timeout: float = 45.0, user_agent: Optional[str] = None):
        self.cache = cache
        self.timeout = timeout
        self.user_agent = user_agent

    async def fetch(self, session: aiohttp.ClientSession, video_url: str, key: str) -> Path:
        """
        Download a video and store it under a cache key.

        Args:
            session: HTTP session
            video_url: Direct video URL
            key: Cache key (content id) for the raw file

        Returns:
            Path of the stored file

        Raises:
            FetchError: On HTTP errors, timeouts or an empty result
        """
        logger.info(f"[DOWNLOAD] Starting video download from: {video_url[:100]}...")
        headers = {'User-Agent': self.user_agent} if self.user_agent else None

        try:
            async with session.get(
                video_url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                logger.info(f"[DOWNLOAD] Response received - Status Code: {response.status}")
                if response.status == 404:
                    raise FetchError("video not found (404)", status=404)
                if not 200 <= response.status < 300:
                    raise FetchError(f"HTTP status {response.status}", status=response.status)
                data = await response.read()
        except asyncio.TimeoutError:
            raise FetchError(f"download timed out after {self.timeout:.0f}s")
        except aiohttp.ClientError as e:
            raise FetchError(f"download failed: {type(e).__name__}: {e}")

        if not data:
            raise FetchError("downloaded body is empty")

        try:
            path = self.cache.put(key, data)
        except OSError as e:
            raise FetchError(f"could not write {key}: {e}")

        if not path.is_file() or path.stat().st_size == 0:
            raise FetchError(f"file missing or empty after write: {path}")

        logger.info(f"[DOWNLOAD] ✓ Video downloaded: {path.name} ({len(data) / (1024 * 1024):.2f}MB)")
        return path


__all__ = ['MediaFetcher']
