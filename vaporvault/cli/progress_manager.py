"""
Rich progress bar for the SteamCMD archive download.
"""

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


class DownloadProgress:
    """
    Displays a single download's progress.

    An instance is passed to the locator as its progress callback; the bar is
    only shown once the first chunk arrives, so runs that find SteamCMD
    already installed print nothing.
    """

    def __init__(self, console: Console, description: str = "Downloading SteamCMD"):
        self.description = description
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=True,
        )
        self._task_id: TaskID | None = None

    def __call__(self, bytes_downloaded: int, total_bytes: int) -> None:
        if self._task_id is None:
            self.progress.start()
            self._task_id = self.progress.add_task(
                self.description, total=total_bytes or None
            )
        self.progress.update(
            self._task_id, completed=bytes_downloaded, total=total_bytes or None
        )

    def __enter__(self) -> "DownloadProgress":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._task_id is not None:
            self.progress.stop()
