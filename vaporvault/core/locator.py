"""
Locates SteamCMD on disk, downloading and installing it when it is missing.
"""

import asyncio
import logging
import os
from urllib.parse import urlparse

import aiohttp

from vaporvault.core.archive import ArchiveExtractor
from vaporvault.exceptions import DownloadError, ExtractionError, ProvisioningError
from vaporvault.infra.filesystem import FileSystem
from vaporvault.infra.http_downloader import HttpDownloader, ProgressCallback
from vaporvault.infra.platform_service import PlatformService
from vaporvault.models.options import InstallOptions
from vaporvault.validation.validator import SteamCmdValidator, get_archive_suffix

log = logging.getLogger(__name__)

ESTIMATED_REQUIRED_SPACE = 50 * 1024 * 1024  # 50 MB minimum

_DOWNLOAD_BASE_URL = "https://steamcdn-a.akamaihd.net/client/installer"
WINDOWS_DOWNLOAD_URL = f"{_DOWNLOAD_BASE_URL}/steamcmd.zip"
LINUX_DOWNLOAD_URL = f"{_DOWNLOAD_BASE_URL}/steamcmd_linux.tar.gz"
MACOS_DOWNLOAD_URL = f"{_DOWNLOAD_BASE_URL}/steamcmd_osx.tar.gz"


class SteamCmdLocator:
    """
    Makes sure a usable SteamCMD executable exists in the install directory.

    The path of the executable is cached on the instance once it has been
    found or installed. Concurrent ``ensure_available`` calls on the same
    instance are serialised so only one of them downloads.
    """

    def __init__(
        self,
        file_system: FileSystem,
        platform_service: PlatformService,
        downloader: HttpDownloader,
        validator: SteamCmdValidator,
        options: InstallOptions | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.file_system = file_system
        self.platform_service = platform_service
        self.downloader = downloader
        self.validator = validator
        self.options = options or InstallOptions()
        self.progress = progress
        self.extractor = ArchiveExtractor(file_system)
        self._cached_path: str | None = None
        self._install_lock = asyncio.Lock()

    @property
    def executable_name(self) -> str:
        return "steamcmd.exe" if self.platform_service.is_windows else "steamcmd"

    @property
    def download_url(self) -> str:
        if self.platform_service.is_windows:
            return WINDOWS_DOWNLOAD_URL
        if self.platform_service.is_linux:
            return LINUX_DOWNLOAD_URL
        return MACOS_DOWNLOAD_URL

    def _base_dir(self) -> str:
        return str(self.options.resolve_install_directory())

    def _executable_path(self, base_dir: str) -> str:
        return self.file_system.combine(base_dir, self.executable_name)

    def get_cached_path(self) -> str | None:
        """Returns the cached executable path without touching disk or network."""
        return self._cached_path

    def probe_filesystem(self) -> str | None:
        """
        Checks for SteamCMD at the expected location without downloading it.

        Returns:
            The executable path if it exists, otherwise None. The cache is only
            updated when the executable is found.
        """
        path = self._executable_path(self._base_dir())
        if self.file_system.file_exists(path):
            self._cached_path = path
            return path
        return None

    async def ensure_available(self) -> str:
        """
        Returns the path to SteamCMD, installing it first if needed.

        Raises:
            ProvisioningError: If the download, extraction or validation fails.
        """
        base_dir = self._base_dir()
        try:
            self.file_system.create_directory(base_dir)
        except OSError as e:
            raise ProvisioningError(
                f"Cannot create SteamCMD install directory '{base_dir}': {e}"
            ) from e
        executable_path = self._executable_path(base_dir)

        if self._is_installed(executable_path):
            self._cached_path = executable_path
            return executable_path

        async with self._install_lock:
            # Another caller may have finished installing while we waited.
            if self._is_installed(executable_path):
                self._cached_path = executable_path
                return executable_path

            await self._download_and_extract(base_dir, executable_path)

        if not self.platform_service.is_windows:
            await self.platform_service.set_executable_permissions(executable_path)

        self._cached_path = executable_path
        log.info(f"SteamCMD is available at '{executable_path}'")
        return executable_path

    def _is_installed(self, executable_path: str) -> bool:
        return (
            self.file_system.file_exists(executable_path)
            and not self.options.force_redownload
        )

    async def _download_and_extract(self, base_dir: str, executable_path: str) -> None:
        log.info(
            "SteamCMD not found. Downloading for "
            f"{self.platform_service.os_description}"
        )

        url = self.download_url
        if get_archive_suffix(url) is None:
            raise ExtractionError("Unsupported archive format for SteamCMD.")

        await self.validator.ensure_sufficient_disk_space(
            base_dir, ESTIMATED_REQUIRED_SPACE
        )

        archive_path = self.file_system.combine(
            base_dir, os.path.basename(urlparse(url).path)
        )
        try:
            try:
                await self.downloader.download_file(url, archive_path, self.progress)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                raise DownloadError(
                    f"Failed to download SteamCMD from {url}: {e}"
                ) from e

            await self.validator.validate_archive(archive_path)
            await self.extractor.extract(archive_path, base_dir)
            await self.validator.validate_executable(executable_path)
        except Exception as e:
            log.error(f"Failed to download or extract SteamCMD: {e}")
            raise
        finally:
            if self.file_system.file_exists(archive_path):
                self.file_system.delete_file(archive_path)
                log.debug(f"Removed downloaded archive '{archive_path}'")
