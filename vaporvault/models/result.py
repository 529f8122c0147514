"""
The outcome of a single SteamCMD invocation.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SteamCmdResult:
    """Exit status and captured output of one SteamCMD process."""

    exit_code: int
    output: str
    error: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def has_errors(self) -> bool:
        """Whether the process wrote anything to stderr."""
        return bool(self.error)

    def __str__(self) -> str:
        text = (
            f"SteamCmd {'succeeded' if self.success else 'failed'} "
            f"(exit code: {self.exit_code})"
        )
        if self.has_errors:
            text += f"\nErrors:\n{self.error}"
        return text
