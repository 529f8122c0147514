"""
Reports facts about the host operating system and applies executable
permissions to files on Unix-like systems.
"""

import asyncio
import logging
import os
import platform
import stat
import sys

log = logging.getLogger(__name__)

_EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class PlatformService:
    """The single place where platform-dependent decisions are made."""

    @property
    def is_windows(self) -> bool:
        return sys.platform == "win32"

    @property
    def is_linux(self) -> bool:
        return sys.platform.startswith("linux")

    @property
    def os_description(self) -> str:
        return platform.platform()

    async def set_executable_permissions(self, file_path: str) -> None:
        """
        Adds the execute bits to a file, the equivalent of ``chmod +x``.

        Does nothing on Windows.
        """
        if self.is_windows:
            return
        await asyncio.to_thread(_add_execute_bits, file_path)


def _add_execute_bits(file_path: str) -> None:
    mode = os.stat(file_path).st_mode
    if mode & _EXECUTE_BITS != _EXECUTE_BITS:
        os.chmod(file_path, mode | _EXECUTE_BITS)
        log.debug(f"Applied executable permissions to '{file_path}'")
