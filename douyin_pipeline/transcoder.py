"""
Size-driven compression and segmentation.

    size > heavy_compress_threshold (50MB)  -> re-encode to 240p
    size > compress_threshold (20MB)        -> re-encode to 360p
    final size > split_threshold (70MB)     -> cut into segment_seconds chunks

Every step is optional: when ffmpeg is missing or a step fails, the last good
file is delivered instead.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from douyin_pipeline.cache import CHUNK_MARKER, VideoCache
from douyin_pipeline.config import MB, Settings
from douyin_pipeline.exceptions import MediaToolError, SplitError, TranscodeError
from douyin_pipeline.ffmpeg import FfmpegTool

logger = logging.getLogger(__name__)


def choose_target_height(size: int, settings: Settings) -> Optional[int]:
    """Return the target height for a raw file size, or None to keep it."""
    if size > settings.heavy_compress_threshold:
        return 240
    if size > settings.compress_threshold:
        return 360
    return None


def needs_split(size: int, settings: Settings) -> bool:
    return size > settings.split_threshold


def chunk_pattern(directory: Path, key: str, ext: str = '.mp4') -> Path:
    """ffmpeg output pattern for segments: <key>_chunk_NNN<ext>."""
    return directory / f"{key}{CHUNK_MARKER}%03d{ext}"


def list_chunks(directory: Path, key: str, ext: str = '.mp4') -> List[Path]:
    """Existing chunk files for a key, in chunk order."""
    return sorted(directory.glob(f"{key}{CHUNK_MARKER}*{ext}"), key=lambda p: p.name)


@dataclass
class PreparedMedia:
    """
    Result of post-processing a downloaded video.

    Attributes:
        final_path: File that would be sent if not segmented
        segments: Chunk files, empty if the video was not split
        height: Height the video was re-encoded to, if any
    """
    final_path: Path
    segments: List[Path] = field(default_factory=list)
    height: Optional[int] = None

    @property
    def is_segmented(self) -> bool:
        return bool(self.segments)

    @property
    def files(self) -> List[Path]:
        """Files to deliver, in order."""
        return list(self.segments) if self.segments else [self.final_path]

    def cleanup(self, cache: VideoCache) -> None:
        """Delete chunks and the pre-split file after a segmented delivery."""
        if not self.segments:
            return
        for path in self.segments:
            cache.remove(path)
        cache.remove(self.final_path)
        logger.info(f"[TRANSCODE] Cleaned up {len(self.segments)} chunk(s) and {self.final_path.name}")


class MediaProcessor:
    """Compresses and splits videos with ffmpeg."""

    def __init__(self, settings: Settings, tool: FfmpegTool, cache: VideoCache):
        self.settings = settings
        self.tool = tool
        self.cache = cache

    async def compress(self, src: Path, height: int) -> Path:
        """
        Re-encode a video to the given height.

        Returns:
            Path of the new <stem>_<height>p file

        Raises:
            TranscodeError: If ffmpeg fails or produces no output
        """
        dst = src.with_name(f"{src.stem}_{height}p{src.suffix}")
        logger.info(f"[TRANSCODE] Compressing {src.name} -> {dst.name}")

        try:
            await self.tool.run([
                '-i', str(src),
                '-vf', f"scale=-2:{height}",
                '-c:v', 'libx264',
                '-preset', 'veryfast',
                '-crf', '28',
                '-c:a', 'aac',
                '-b:a', '96k',
                '-movflags', '+faststart',
                str(dst),
            ], timeout=self.settings.ffmpeg_timeout)
        except MediaToolError as e:
            self.cache.remove(dst)
            raise TranscodeError(str(e))

        if not dst.is_file() or dst.stat().st_size == 0:
            self.cache.remove(dst)
            raise TranscodeError(f"ffmpeg produced no output for {src.name}")
        return dst

    async def split(self, src: Path, key: str) -> List[Path]:
        """
        Cut a video into fixed-length chunks without re-encoding.

        Returns:
            Chunk paths sorted by name

        Raises:
            SplitError: If ffmpeg fails or leftover chunks cannot be removed
        """
        pattern = chunk_pattern(src.parent, key, src.suffix)
        stale = list_chunks(src.parent, key, src.suffix)
        if stale:
            logger.warning(f"[TRANSCODE] Removing {len(stale)} leftover chunk(s) for {key}")
            for chunk in stale:
                if not self.cache.remove(chunk):
                    raise SplitError(f"Cannot clear leftover chunk {chunk.name}")
        logger.info(f"[TRANSCODE] Splitting {src.name} into {self.settings.segment_seconds}s chunks")

        try:
            await self.tool.run([
                '-i', str(src),
                '-map', '0',
                '-c', 'copy',
                '-f', 'segment',
                '-segment_time', str(self.settings.segment_seconds),
                '-reset_timestamps', '1',
                str(pattern),
            ], timeout=self.settings.ffmpeg_timeout)
        except MediaToolError as e:
            for chunk in list_chunks(src.parent, key, src.suffix):
                self.cache.remove(chunk)
            raise SplitError(str(e))

        return list_chunks(src.parent, key, src.suffix)

    async def prepare(self, raw_path: Path, key: str) -> PreparedMedia:
        """
        Compress and/or split a downloaded video as its size requires.

        Args:
            raw_path: Downloaded file
            key: Content key used for chunk names

        Returns:
            PreparedMedia describing what to deliver
        """
        size = raw_path.stat().st_size
        height = choose_target_height(size, self.settings)
        logger.info(f"[TRANSCODE] Raw size {size / MB:.2f}MB, target height: {height or 'unchanged'}")

        if height is None and not needs_split(size, self.settings):
            return PreparedMedia(final_path=raw_path)

        if not await self.tool.ensure_ready():
            logger.warning(f"[TRANSCODE] ffmpeg unavailable, delivering {raw_path.name} as is")
            return PreparedMedia(final_path=raw_path)

        final_path = raw_path
        applied_height = None
        if height is not None:
            try:
                final_path = await self.compress(raw_path, height)
                applied_height = height
                self.cache.remove(raw_path)
            except TranscodeError as e:
                logger.error(f"[TRANSCODE] ✗ Compression failed, keeping original: {e}")

        final_size = final_path.stat().st_size
        logger.info(f"[TRANSCODE] Final size {final_size / MB:.2f}MB ({final_path.name})")

        if not needs_split(final_size, self.settings):
            return PreparedMedia(final_path=final_path, height=applied_height)

        try:
            segments = await self.split(final_path, key)
        except SplitError as e:
            logger.error(f"[TRANSCODE] ✗ Split failed, delivering {final_path.name} whole: {e}")
            return PreparedMedia(final_path=final_path, height=applied_height)

        if not segments:
            logger.warning(f"[TRANSCODE] Split produced no chunks, delivering {final_path.name} whole")
            return PreparedMedia(final_path=final_path, height=applied_height)

        logger.info(f"[TRANSCODE] ✓ Split into {len(segments)} chunk(s)")
        return PreparedMedia(final_path=final_path, segments=segments, height=applied_height)


__all__ = [
    'CHUNK_MARKER',
    'PreparedMedia',
    'MediaProcessor',
    'choose_target_height',
    'needs_split',
    'chunk_pattern',
    'list_chunks',
]
