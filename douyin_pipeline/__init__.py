"""
Douyin video download feature.

This package contains everything related to Douyin share links:
- Share link detection and content ids
- Extraction providers with fallback
- Download, local cache and ffmpeg post-processing
- Pipeline handler for Telegram integration
"""

from douyin_pipeline.config import Settings
from douyin_pipeline.handler import DouyinDownloadHandler
from douyin_pipeline.processor import DouyinPipeline, PipelineOutcome

# For extending with new providers
from douyin_pipeline.providers import BaseProvider

__all__ = [
    'Settings',
    'DouyinDownloadHandler',
    'DouyinPipeline',
    'PipelineOutcome',
    'BaseProvider',
]
