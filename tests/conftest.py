import io
import tarfile
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vaporvault.validation.events import ValidationEvent


class FakePlatformService:
    """Platform service with a fixed OS and a recorded chmod step."""

    def __init__(self, is_windows: bool = False, is_linux: bool = True):
        self.is_windows = is_windows
        self.is_linux = is_linux and not is_windows
        if is_windows:
            self.os_description = "Windows-10"
        elif self.is_linux:
            self.os_description = "Linux-6.1"
        else:
            self.os_description = "macOS-14.0"
        self.set_executable_permissions = AsyncMock()


class RecordingEventHandler:
    def __init__(self):
        self.events: list[ValidationEvent] = []

    def handle_event(self, event: ValidationEvent) -> None:
        self.events.append(event)

    @property
    def messages(self) -> list[str]:
        return [event.message for event in self.events]


def make_zip(path: Path, entries: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return path


def make_tar_gz(
    path: Path,
    entries: dict[str, bytes],
    modes: dict[str, int] | None = None,
    directories: tuple[str, ...] = (),
) -> Path:
    modes = modes or {}
    with tarfile.open(path, "w:gz") as archive:
        for name in directories:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            archive.addfile(info)
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            archive.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def linux_platform() -> FakePlatformService:
    return FakePlatformService(is_windows=False, is_linux=True)


@pytest.fixture
def windows_platform() -> FakePlatformService:
    return FakePlatformService(is_windows=True)


@pytest.fixture
def event_handler() -> RecordingEventHandler:
    return RecordingEventHandler()
