"""
Peark Provider
Public Douyin parser at api.pearktrue.cn, answers GET with ?url=<link>
"""

from typing import Any, Dict, Optional

from douyin_pipeline.providers import BaseProvider


class PearkProvider(BaseProvider):
    """Provider using api.pearktrue.cn"""

    PROVIDER_NAME = "PEARK"
    ENDPOINT = 'https://api.pearktrue.cn/api/video/douyin/'
    METHOD = 'GET'
    SUCCESS_CODE = 200
    DEFAULT_PRIORITY = 90

    def __init__(self):
        super().__init__("Peark-API")

    def parse_result(self, data: Dict[str, Any]) -> Optional[str]:
        # Response structure: {"code": 200, "msg": "...", "data": {"title": "...", "url": "..."}}
        return data.get('url') or None
