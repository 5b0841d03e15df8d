"""
Runtime configuration for the Douyin pipeline.

All values come from environment variables (a .env file is loaded by bot.py).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MB = 1024 * 1024

DEFAULT_USER_AGENT = 'WhiteCat-Douyin-Bot/1.0'
DEFAULT_INSTALL_SCRIPT = str(Path(__file__).resolve().parent.parent / 'scripts' / 'install_ffmpeg.sh')


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value}, using default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {value}, using default {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """
    Pipeline settings.

    Size thresholds are in bytes and compared with a strict ">".
    """
    cache_dir: Path = Path('data/douyin_cache')
    cache_max_files: int = 10
    compress_threshold: int = 20 * MB
    heavy_compress_threshold: int = 50 * MB
    # Above the 50MB Bot API upload cap; lower it when unsplit videos fail to send
    split_threshold: int = 70 * MB
    segment_seconds: int = 55
    provider_timeout: float = 15.0
    download_timeout: float = 45.0
    ffmpeg_timeout: float = 600.0
    user_agent: str = DEFAULT_USER_AGENT
    ffmpeg_path: Optional[str] = None
    ffmpeg_install_script: Optional[str] = DEFAULT_INSTALL_SCRIPT
    bot_username: str = '@douyin_cat_bot'

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            cache_dir=Path(os.getenv('DOUYIN_CACHE_DIR', 'data/douyin_cache')),
            cache_max_files=max(1, _env_int('DOUYIN_CACHE_MAX_FILES', 10)),
            compress_threshold=_env_int('DOUYIN_COMPRESS_THRESHOLD_MB', 20) * MB,
            heavy_compress_threshold=_env_int('DOUYIN_HEAVY_COMPRESS_THRESHOLD_MB', 50) * MB,
            split_threshold=_env_int('DOUYIN_SPLIT_THRESHOLD_MB', 70) * MB,
            segment_seconds=max(1, _env_int('DOUYIN_SEGMENT_SECONDS', 55)),
            provider_timeout=_env_float('DOUYIN_PROVIDER_TIMEOUT', 15.0),
            download_timeout=_env_float('DOUYIN_DOWNLOAD_TIMEOUT', 45.0),
            ffmpeg_timeout=_env_float('DOUYIN_FFMPEG_TIMEOUT', 600.0),
            user_agent=os.getenv('DOUYIN_USER_AGENT', DEFAULT_USER_AGENT),
            ffmpeg_path=os.getenv('FFMPEG_PATH') or None,
            ffmpeg_install_script=os.getenv('FFMPEG_INSTALL_SCRIPT', DEFAULT_INSTALL_SCRIPT) or None,
            bot_username=os.getenv('BOT_USERNAME', '@douyin_cat_bot'),
        )


__all__ = ['MB', 'Settings']
