"""Exceptions raised inside the Douyin download pipeline."""

from typing import Optional


class DouyinError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(DouyinError):
    """A single extraction provider failed to produce a video URL."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class FetchError(DouyinError):
    """Downloading the resolved media failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MediaToolError(DouyinError):
    """ffmpeg is missing or exited with an error."""


class TranscodeError(DouyinError):
    """Re-encoding to a lower resolution failed."""


class SplitError(DouyinError):
    """Segmenting a large file into chunks failed."""


__all__ = [
    'DouyinError',
    'ProviderError',
    'FetchError',
    'MediaToolError',
    'TranscodeError',
    'SplitError',
]
