"""
Custom Provider
Any self-hosted or third-party parser configured through the environment:

    DOUYIN_CUSTOM_API_URL           endpoint (provider is skipped when unset)
    DOUYIN_CUSTOM_API_METHOD        GET or POST (default GET)
    DOUYIN_CUSTOM_API_SUCCESS_CODE  value of "code" on success (default 200)

The video URL is looked up on a quality ladder, lowest first, because smaller
files need less post-processing before they can be sent.
"""

import logging
import os
from typing import Any, Dict, Optional

from douyin_pipeline.providers import BaseProvider, first_present

logger = logging.getLogger(__name__)

QUALITY_LADDER = ('360p', '480p', '720p')
PLAIN_KEYS = ('url', 'play', 'video_url')


class CustomApiProvider(BaseProvider):
    """Provider pointing at an endpoint taken from the environment."""

    PROVIDER_NAME = "DOUYIN_CUSTOM_API"
    DEFAULT_PRIORITY = 70

    def __init__(self):
        super().__init__("Custom-API")
        self._endpoint = os.getenv('DOUYIN_CUSTOM_API_URL') or None
        self._method = os.getenv('DOUYIN_CUSTOM_API_METHOD', 'GET')
        code = os.getenv('DOUYIN_CUSTOM_API_SUCCESS_CODE', '200')
        try:
            self._success_code = int(code)
        except ValueError:
            logger.warning(f"Invalid DOUYIN_CUSTOM_API_SUCCESS_CODE: {code}, using 200")
            self._success_code = 200

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint

    @property
    def method(self) -> str:
        return self._method.upper()

    @property
    def success_code(self) -> Any:
        return self._success_code

    def parse_result(self, data: Dict[str, Any]) -> Optional[str]:
        # Quality keys may sit directly in data or under data["video"]
        nested = data.get('video')
        for source in (nested, data):
            if isinstance(source, dict):
                url = first_present(source, QUALITY_LADDER)
                if url:
                    return url
        if isinstance(nested, str) and nested:
            return nested
        return first_present(data, PLAIN_KEYS)
