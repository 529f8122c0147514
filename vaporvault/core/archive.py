"""
Extracts the SteamCMD archive into its install directory.

ZIP archives are read entry by entry; tar.gz archives are streamed
sequentially. Each entry is copied in a worker thread so cancellation is
honoured between entries.
"""

import asyncio
import logging
import os
import shutil
import stat
import tarfile
import zipfile
from typing import BinaryIO

from vaporvault.exceptions import ExtractionError
from vaporvault.infra.filesystem import FileSystem

log = logging.getLogger(__name__)


class ArchiveExtractor:
    """Unpacks ``.zip`` and ``.tar.gz`` archives through a ``FileSystem``."""

    def __init__(self, file_system: FileSystem):
        self.file_system = file_system

    async def extract(self, archive_path: str, destination_dir: str) -> None:
        """
        Extracts ``archive_path`` into ``destination_dir``.

        Raises:
            ExtractionError: If the format is unsupported, the archive is
                corrupt, or an entry would land outside ``destination_dir``.
        """
        try:
            if archive_path.endswith(".zip"):
                await self._extract_zip(archive_path, destination_dir)
            elif archive_path.endswith(".tar.gz"):
                await self._extract_tar_gz(archive_path, destination_dir)
            else:
                raise ExtractionError("Unsupported archive format for SteamCMD.")
        except ExtractionError:
            raise
        except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError) as e:
            raise ExtractionError(
                f"Failed to extract '{os.path.basename(archive_path)}': {e}"
            ) from e

    def _destination_for(self, destination_dir: str, entry_name: str) -> str:
        dest_path = self.file_system.combine(destination_dir, entry_name)
        root = os.path.realpath(destination_dir)
        try:
            inside = os.path.commonpath([root, os.path.realpath(dest_path)]) == root
        except ValueError:
            inside = False
        if not inside:
            raise ExtractionError(
                f"Archive entry '{entry_name}' points outside the install directory."
            )
        return dest_path

    def _ensure_parent(self, dest_path: str) -> None:
        parent = self.file_system.get_directory_name(dest_path)
        if parent:
            self.file_system.create_directory(parent)

    def _copy_to(self, source: BinaryIO, dest_path: str) -> None:
        with source, self.file_system.create(dest_path) as target:
            shutil.copyfileobj(source, target)

    async def _extract_zip(self, archive_path: str, destination_dir: str) -> None:
        with (
            self.file_system.open_read(archive_path) as stream,
            zipfile.ZipFile(stream) as archive,
        ):
            for entry in archive.infolist():
                dest_path = self._destination_for(destination_dir, entry.filename)
                if entry.is_dir():
                    self.file_system.create_directory(dest_path)
                    continue
                self._ensure_parent(dest_path)
                await asyncio.to_thread(self._copy_to, archive.open(entry), dest_path)
                log.debug(f"Extracted '{entry.filename}'")

    async def _extract_tar_gz(self, archive_path: str, destination_dir: str) -> None:
        with self.file_system.open_read(archive_path) as stream:
            with tarfile.open(fileobj=stream, mode="r|gz") as archive:
                while (entry := await asyncio.to_thread(archive.next)) is not None:
                    dest_path = self._destination_for(destination_dir, entry.name)
                    if entry.isdir():
                        self.file_system.create_directory(dest_path)
                        continue
                    if not entry.isfile():
                        log.debug(f"Skipping non-regular tar entry '{entry.name}'")
                        continue

                    self._ensure_parent(dest_path)
                    source = archive.extractfile(entry)
                    await asyncio.to_thread(self._copy_to, source, dest_path)
                    if entry.mode & stat.S_IXUSR:
                        os.chmod(dest_path, entry.mode & 0o777)
                    log.debug(f"Extracted '{entry.name}'")
