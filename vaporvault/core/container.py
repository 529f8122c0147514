"""
Wires the default implementations of the provisioning pipeline together.
"""

import logging
from dataclasses import dataclass

from vaporvault.core.locator import SteamCmdLocator
from vaporvault.core.service import SteamCmdService
from vaporvault.infra import FileSystem, HttpDownloader, PlatformService
from vaporvault.infra.http_downloader import ProgressCallback
from vaporvault.models.options import InstallOptions
from vaporvault.utils.structured_logger import StructuredLogger
from vaporvault.validation import LoggingValidationEventHandler, SteamCmdValidator


@dataclass
class SteamCmdServices:
    """The long-lived objects shared by one application run."""

    platform_service: PlatformService
    downloader: HttpDownloader
    validator: SteamCmdValidator
    locator: SteamCmdLocator
    service: SteamCmdService

    async def close(self) -> None:
        await self.downloader.close()


def create_services(
    options: InstallOptions | None = None,
    structured_logger: StructuredLogger | None = None,
    progress: ProgressCallback | None = None,
) -> SteamCmdServices:
    file_system = FileSystem()
    platform_service = PlatformService()
    downloader = HttpDownloader()
    validator = SteamCmdValidator(
        file_system,
        platform_service,
        LoggingValidationEventHandler(
            logging.getLogger("vaporvault.validation"), structured_logger
        ),
    )
    locator = SteamCmdLocator(
        file_system, platform_service, downloader, validator, options, progress
    )
    return SteamCmdServices(
        platform_service=platform_service,
        downloader=downloader,
        validator=validator,
        locator=locator,
        service=SteamCmdService(locator, platform_service),
    )
