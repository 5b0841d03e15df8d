"""
Local video cache.

Files are named after the content id plus a quality suffix:
    <id>.mp4         raw download
    <id>_360p.mp4    compressed
    <id>_240p.mp4    heavily compressed
Segment chunks (<id>_chunk_NNN.mp4) live here only until they are delivered.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

VIDEO_EXT = '.mp4'

# Lookup order: most compressed first, a smaller earlier result is fine to reuse
VARIANT_SUFFIXES = ('_240p', '_360p', '')

CHUNK_MARKER = '_chunk_'
PART_SUFFIX = '.part'


def is_transient(path: Path) -> bool:
    """True for in-flight writes and segment chunks, which eviction leaves alone."""
    return path.name.endswith(PART_SUFFIX) or CHUNK_MARKER in path.name


class VideoCache:
    """
    Maps content ids to video files in a single directory.

    No locking is done: file names are derived from the content id, so two
    concurrent writers for the same video just overwrite each other.
    """

    def __init__(self, directory: Path, max_files: int = 10):
        """
        Initialize the cache.

        Args:
            directory: Cache directory (created on first write)
            max_files: Number of files kept after eviction
        """
        self.directory = Path(directory)
        self.max_files = max_files

    def path_for(self, content_id: str, variant: str = '') -> Path:
        """Return the file path for a content id and quality suffix."""
        return self.directory / f"{content_id}{variant}{VIDEO_EXT}"

    def lookup(self, content_id: Optional[str]) -> Optional[Path]:
        """
        Find a cached file for a content id.

        Args:
            content_id: Content id from the share link

        Returns:
            Path of the most compressed existing variant, or None
        """
        if not content_id:
            return None

        for suffix in VARIANT_SUFFIXES:
            path = self.path_for(content_id, suffix)
            if path.is_file() and path.stat().st_size > 0:
                logger.info(f"[CACHE] ✓ HIT {content_id} -> {path.name}")
                return path

        logger.info(f"[CACHE] MISS {content_id}")
        return None

    def put(self, content_id: str, data: bytes, variant: str = '') -> Path:
        """
        Store bytes for a content id.

        The data is written to a temporary file first and renamed into place.

        Args:
            content_id: Cache key
            data: File contents
            variant: Quality suffix (empty for the raw download)

        Returns:
            Path of the stored file
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(content_id, variant)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}{PART_SUFFIX}")

        with open(tmp_path, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, path)

        logger.info(f"[CACHE] Stored {path.name} ({len(data) / (1024 * 1024):.2f}MB)")
        return path

    def remove(self, path: Path) -> bool:
        """
        Delete a file, logging instead of raising on failure.

        Returns:
            True if the file was deleted or was already gone
        """
        try:
            Path(path).unlink()
            logger.debug(f"[CACHE] Deleted {Path(path).name}")
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"[CACHE] ✗ Could not delete {path}: {type(e).__name__}: {e}")
            return False

    def _list_files(self) -> List[Tuple[float, Path]]:
        entries = []
        try:
            candidates = list(self.directory.iterdir())
        except FileNotFoundError:
            return entries

        for path in candidates:
            try:
                if path.is_file() and not is_transient(path):
                    entries.append((path.stat().st_mtime, path))
            except FileNotFoundError:
                # Deleted by a concurrent request between listing and stat
                continue
        return entries

    def evict(self) -> List[Path]:
        """
        Delete the oldest cached videos until at most max_files remain.

        Chunks and partial writes belong to requests still in progress and are
        neither counted nor deleted.

        Returns:
            Paths that were deleted
        """
        entries = self._list_files()
        excess = len(entries) - self.max_files
        if excess <= 0:
            logger.debug(f"[CACHE] {len(entries)} file(s), nothing to evict (max {self.max_files})")
            return []

        entries.sort(key=lambda entry: entry[0])
        removed = []
        for _, path in entries[:excess]:
            if self.remove(path):
                removed.append(path)

        logger.info(f"[CACHE] Evicted {len(removed)} file(s): {[p.name for p in removed]}")
        return removed

    def file_count(self) -> int:
        """Number of cached videos, not counting chunks and partial writes."""
        return len(self._list_files())


__all__ = ['VIDEO_EXT', 'VARIANT_SUFFIXES', 'CHUNK_MARKER', 'VideoCache', 'is_transient']
