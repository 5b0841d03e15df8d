"""
Shared fixtures: a fake aiohttp session, a fake ffmpeg and test settings.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from douyin_pipeline.config import MB, Settings


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as an async context manager."""

    def __init__(self, status: int = 200, json_data: Any = None, body: bytes = b''):
        self.status = status
        self._json = json_data
        self._body = body

    async def json(self, content_type=None):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class RaisingResponse:
    """Context manager that raises when entered (timeouts, connection errors)."""

    def __init__(self, exc: BaseException):
        self.exc = exc

    async def __aenter__(self):
        raise self.exc

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Fake aiohttp.ClientSession routing requests by URL.

    Unknown URLs answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = routes or {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status=404)
        if isinstance(route, BaseException):
            return RaisingResponse(route)
        return route

    def get(self, url: str, **kwargs):
        return self.request('GET', url, **kwargs)


def make_file(path: Path, size: int) -> Path:
    """Create a sparse file of the given size."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'wb') as f:
        f.write(b'\x00')
        f.truncate(size)
    return path


class FakeFfmpeg:
    """
    Fake FfmpegTool.

    compress_size: size of the file written by a compress call (None = fail)
    chunk_count: number of chunks written by a segment call (None = fail)
    """

    def __init__(self, available: bool = True, compress_size: Optional[int] = 10 * MB,
                 chunk_count: Optional[int] = 2):
        self.available = available
        self.compress_size = compress_size
        self.chunk_count = chunk_count
        self.calls: List[List[str]] = []

    async def ensure_ready(self):
        return '/usr/bin/ffmpeg' if self.available else None

    async def run(self, args, timeout=600.0):
        from douyin_pipeline.exceptions import MediaToolError

        self.calls.append(list(args))
        if not self.available:
            raise MediaToolError("ffmpeg is not available")

        output = args[-1]
        if '-f' in args and 'segment' in args:
            if self.chunk_count is None:
                raise MediaToolError("segment failed")
            for i in range(self.chunk_count):
                make_file(Path(output % i), 1 * MB)
            return

        if self.compress_size is None:
            raise MediaToolError("encode failed")
        make_file(Path(output), self.compress_size)


@pytest.fixture
def settings(tmp_path):
    return Settings(cache_dir=tmp_path / 'cache', ffmpeg_install_script=None)


@pytest.fixture
def fake_ffmpeg():
    return FakeFfmpeg()


@pytest.fixture
def clean_provider_env(monkeypatch):
    """Remove provider-related variables from the environment."""
    for name in list(os.environ):
        if name.startswith(('PEARK_', 'AA1_', 'DOUYIN_CUSTOM_API')):
            monkeypatch.delenv(name, raising=False)
