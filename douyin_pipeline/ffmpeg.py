"""
ffmpeg discovery, one-shot installation and invocation.
"""

import asyncio
import logging
import os
import shutil
from typing import List, Optional

from douyin_pipeline.exceptions import MediaToolError

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT = 300


class FfmpegTool:
    """
    Locates ffmpeg and runs it.

    If ffmpeg is missing, the install script is run at most once for the
    lifetime of this object; the outcome is remembered so later requests do
    not retry the installer.
    """

    def __init__(self, path: Optional[str] = None, install_script: Optional[str] = None):
        """
        Initialize the tool.

        Args:
            path: Explicit ffmpeg executable (FFMPEG_PATH)
            install_script: Shell script that installs ffmpeg
        """
        self.configured_path = path
        self.install_script = install_script
        self._install_attempted = False
        self._executable: Optional[str] = None
        self._lock = asyncio.Lock()

    def locate(self) -> Optional[str]:
        """Return the ffmpeg executable, or None if it cannot be found."""
        if self.configured_path:
            if os.path.isfile(self.configured_path) and os.access(self.configured_path, os.X_OK):
                return self.configured_path
            found = shutil.which(self.configured_path)
            if found:
                return found
        return shutil.which('ffmpeg')

    async def _run_installer(self) -> None:
        if not self.install_script or not os.path.isfile(self.install_script):
            logger.warning(f"[FFMPEG] ✗ No install script available ({self.install_script})")
            return

        logger.warning(f"[FFMPEG] ffmpeg not found, running {self.install_script}...")
        proc = await asyncio.create_subprocess_exec(
            'sh', self.install_script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=INSTALL_TIMEOUT)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error(f"[FFMPEG] ✗ Install script timed out after {INSTALL_TIMEOUT}s")
            return

        if proc.returncode != 0:
            error_msg = stderr.decode(errors='replace').strip() if stderr else 'no output'
            logger.error(f"[FFMPEG] ✗ Install script failed (exit {proc.returncode}): {error_msg[-500:]}")

    async def ensure_ready(self) -> Optional[str]:
        """
        Make sure ffmpeg is available.

        Returns:
            Path of the ffmpeg executable, or None if it is unavailable
        """
        if self._executable:
            return self._executable

        async with self._lock:
            executable = self.locate()
            if not executable and not self._install_attempted:
                self._install_attempted = True
                try:
                    await self._run_installer()
                except OSError as e:
                    logger.error(f"[FFMPEG] ✗ Could not run install script: {type(e).__name__}: {e}")
                executable = self.locate()

            if executable:
                logger.info(f"[FFMPEG] ✓ Using {executable}")
                self._executable = executable
            else:
                logger.warning(f"[FFMPEG] ✗ ffmpeg unavailable, videos will be sent unprocessed")
            return executable

    async def run(self, args: List[str], timeout: float = 600.0) -> None:
        """
        Run ffmpeg with the given arguments.

        Args:
            args: Arguments after the executable name
            timeout: Seconds before the process is killed

        Raises:
            MediaToolError: If ffmpeg is unavailable, times out or exits non-zero
        """
        executable = await self.ensure_ready()
        if not executable:
            raise MediaToolError("ffmpeg is not available")

        cmd = [executable, '-y', '-hide_banner', '-loglevel', 'error', *args]
        logger.debug(f"[FFMPEG] cmd: {' '.join(cmd)}")

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise MediaToolError(f"ffmpeg timed out after {timeout:.0f}s")

        if proc.returncode != 0:
            error_msg = stderr.decode(errors='replace').strip() if stderr else 'Unknown ffmpeg error'
            raise MediaToolError(f"ffmpeg exited with {proc.returncode}: {error_msg[-500:]}")


__all__ = ['FfmpegTool']
