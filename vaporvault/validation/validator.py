"""
Integrity checks for the SteamCMD archive, the extracted executable and the
disk it is installed to.
"""

import asyncio
import gzip
import os
import zipfile
from pathlib import Path
from typing import Any

import psutil

from vaporvault.exceptions import ValidationError, ValidationErrorKind
from vaporvault.infra.filesystem import FileSystem
from vaporvault.infra.platform_service import PlatformService

from .events import EventLevel, ValidationEvent, ValidationEventHandler

SUPPORTED_ARCHIVE_SUFFIXES = (".zip", ".tar.gz")
_WINDOWS_EXECUTABLE_MAGIC = b"MZ"


def get_archive_suffix(path: str) -> str | None:
    """Returns the supported archive suffix of ``path``, if it has one."""
    for suffix in SUPPORTED_ARCHIVE_SUFFIXES:
        if path.endswith(suffix):
            return suffix
    return None


class SteamCmdValidator:
    """
    Validates downloaded and extracted SteamCMD files.

    Every check reports its progress to the injected event handler. A check
    that fails emits an ERROR event and then raises ``ValidationError``.
    """

    COMPONENT_NAME = "SteamCmdValidator"

    def __init__(
        self,
        file_system: FileSystem,
        platform_service: PlatformService,
        event_handler: ValidationEventHandler,
    ):
        self.file_system = file_system
        self.platform_service = platform_service
        self.event_handler = event_handler

    def _raise_event(
        self,
        message: str,
        properties: dict[str, Any],
        level: EventLevel = EventLevel.INFO,
        exception: BaseException | None = None,
    ) -> None:
        self.event_handler.handle_event(
            ValidationEvent(
                component=self.COMPONENT_NAME,
                message=message,
                level=level,
                exception=exception,
                properties=dict(properties),
            )
        )

    def _fail(
        self,
        event_message: str,
        error_message: str,
        kind: ValidationErrorKind,
        properties: dict[str, Any],
    ) -> ValidationError:
        self._raise_event(event_message, properties, EventLevel.ERROR)
        return ValidationError(error_message, kind)

    async def validate_archive(self, archive_path: str) -> None:
        """
        Checks that a downloaded archive exists, has a supported format and
        contains data.

        Raises:
            ValidationError: If any check fails.
        """
        suffix = get_archive_suffix(archive_path)
        properties: dict[str, Any] = {
            "archive_path": archive_path,
            "archive_type": suffix or os.path.splitext(archive_path)[1],
        }

        try:
            self._raise_event("Starting archive validation", properties)

            if not self.file_system.file_exists(archive_path):
                raise self._fail(
                    "Archive file not found",
                    f"Archive file not found at {archive_path}",
                    ValidationErrorKind.NOT_FOUND,
                    properties,
                )

            if suffix is None:
                raise self._fail(
                    "Unsupported archive format",
                    "Unsupported archive format for SteamCMD",
                    ValidationErrorKind.UNSUPPORTED_FORMAT,
                    properties,
                )

            properties["file_size"] = self.file_system.file_size(archive_path)
            if properties["file_size"] == 0:
                raise self._fail(
                    "Empty archive detected",
                    "Downloaded archive is empty",
                    ValidationErrorKind.EMPTY,
                    properties,
                )

            if suffix == ".zip":
                entry_count = await asyncio.to_thread(
                    self._count_zip_entries, archive_path
                )
                properties["entry_count"] = entry_count
                if entry_count == 0:
                    raise self._fail(
                        "Archive contains no entries",
                        "Archive contains no entries",
                        ValidationErrorKind.EMPTY,
                        properties,
                    )
                self._raise_event("ZIP archive validation successful", properties)
            else:
                bytes_read = await asyncio.to_thread(
                    self._read_gzip_prefix, archive_path
                )
                properties["initial_bytes_read"] = bytes_read
                if bytes_read == 0:
                    raise self._fail(
                        "Archive appears to be corrupted",
                        "Archive appears to be corrupted",
                        ValidationErrorKind.CORRUPTED,
                        properties,
                    )
                self._raise_event("TAR.GZ archive validation successful", properties)

        except ValidationError:
            raise
        except Exception as e:
            self._raise_event(
                "Archive validation failed", properties, EventLevel.ERROR, e
            )
            raise ValidationError("Failed to validate archive") from e

    def _count_zip_entries(self, archive_path: str) -> int:
        with self.file_system.open_read(archive_path) as stream:
            with zipfile.ZipFile(stream) as archive:
                return len(archive.infolist())

    def _read_gzip_prefix(self, archive_path: str) -> int:
        with self.file_system.open_read(archive_path) as stream:
            with gzip.GzipFile(fileobj=stream) as gz:
                return len(gz.read(1024))

    async def validate_executable(self, executable_path: str) -> None:
        """
        Checks that the extracted executable exists and is non-empty.

        On Windows the file must start with the DOS ``MZ`` header. Elsewhere
        no header check is made; the file is made executable instead.

        Raises:
            ValidationError: If any check fails.
        """
        properties: dict[str, Any] = {
            "executable_path": executable_path,
            "platform": self.platform_service.os_description,
        }

        try:
            self._raise_event("Starting executable validation", properties)

            if not self.file_system.file_exists(executable_path):
                raise self._fail(
                    "Executable not found",
                    f"Executable not found at {executable_path}",
                    ValidationErrorKind.NOT_FOUND,
                    properties,
                )

            properties["file_size"] = self.file_system.file_size(executable_path)
            if properties["file_size"] == 0:
                raise self._fail(
                    "Empty executable file",
                    "Executable file is empty",
                    ValidationErrorKind.EMPTY,
                    properties,
                )

            if self.platform_service.is_windows:
                header = await asyncio.to_thread(self._read_header, executable_path)
                properties["header_bytes_read"] = len(header)

                if len(header) < len(_WINDOWS_EXECUTABLE_MAGIC):
                    raise self._fail(
                        "File too small for executable",
                        "File is too small to be a valid executable",
                        ValidationErrorKind.TOO_SMALL,
                        properties,
                    )
                if header != _WINDOWS_EXECUTABLE_MAGIC:
                    raise self._fail(
                        "Invalid executable header",
                        "File is not a valid Windows executable",
                        ValidationErrorKind.INVALID_HEADER,
                        properties,
                    )
            else:
                await self.platform_service.set_executable_permissions(executable_path)

            self._raise_event("Executable validation successful", properties)

        except ValidationError:
            raise
        except Exception as e:
            self._raise_event(
                "Executable validation failed", properties, EventLevel.ERROR, e
            )
            raise ValidationError("Failed to validate executable") from e

    def _read_header(self, executable_path: str) -> bytes:
        with self.file_system.open_read(executable_path) as stream:
            return stream.read(len(_WINDOWS_EXECUTABLE_MAGIC))

    async def ensure_sufficient_disk_space(
        self, path: str, required_bytes: int
    ) -> None:
        """
        Checks that the filesystem holding ``path`` has at least
        ``required_bytes`` free.

        Raises:
            ValidationError: If there is not enough space or the check fails.
        """
        properties: dict[str, Any] = {"path": path, "required_bytes": required_bytes}

        try:
            self._raise_event("Checking disk space", properties)

            available = await asyncio.to_thread(_available_bytes, path)
            properties["available_bytes"] = available

            if available < required_bytes:
                raise self._fail(
                    "Insufficient disk space",
                    f"Insufficient disk space. Required: "
                    f"{required_bytes // 1024 // 1024}MB, "
                    f"Available: {available // 1024 // 1024}MB",
                    ValidationErrorKind.INSUFFICIENT_SPACE,
                    properties,
                )

            self._raise_event("Sufficient disk space available", properties)

        except ValidationError:
            raise
        except Exception as e:
            self._raise_event(
                "Disk space check failed", properties, EventLevel.ERROR, e
            )
            raise ValidationError("Failed to check disk space") from e


def _available_bytes(path: str) -> int:
    """Free bytes on the filesystem holding ``path`` or its nearest existing parent."""
    probe = Path(path).absolute()
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return psutil.disk_usage(str(probe)).free
