"""
AA1 Provider
Free public parser at zj.v.api.aa1.cn, takes a form-encoded POST and reports
success with code 1 instead of 200.
"""

from typing import Any, Dict, Optional

from douyin_pipeline.providers import BaseProvider


class AA1Provider(BaseProvider):
    """Provider using zj.v.api.aa1.cn/api/douyinjx/"""

    PROVIDER_NAME = "AA1"
    ENDPOINT = 'https://zj.v.api.aa1.cn/api/douyinjx/'
    METHOD = 'POST'
    SUCCESS_CODE = 1
    DEFAULT_PRIORITY = 80

    def __init__(self):
        super().__init__("AA1-API")

    def parse_result(self, data: Dict[str, Any]) -> Optional[str]:
        # Response structure: {"code": 1, "msg": "...", "data": {"title": "...", "play": "..."}}
        return data.get('play') or None
