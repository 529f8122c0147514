"""
Thin wrapper around filesystem access so the provisioning pipeline can be
exercised without touching the real disk.
"""

import os
from pathlib import Path
from typing import BinaryIO


class FileSystem:
    """Filesystem operations used by the locator and the validator."""

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(path)

    def file_size(self, path: str) -> int:
        return os.path.getsize(path)

    def open_read(self, path: str) -> BinaryIO:
        return open(path, "rb")  # noqa: SIM115

    def create(self, path: str) -> BinaryIO:
        """Opens a file for writing, truncating it if it already exists."""
        return open(path, "wb")  # noqa: SIM115

    def create_directory(self, path: str) -> None:
        """Creates a directory if it does not already exist."""
        Path(path).mkdir(parents=True, exist_ok=True)

    def delete_file(self, path: str) -> None:
        os.remove(path)

    def combine(self, *parts: str) -> str:
        return os.path.join(*parts)

    def get_directory_name(self, path: str) -> str:
        return os.path.dirname(path)
