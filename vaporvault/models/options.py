"""
Pydantic models for installation options and application configuration.
"""

import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

STEAMCMD_DIRECTORY_NAME = "steamcmd"


def get_program_base_dir() -> Path:
    """The directory containing the running program."""
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return Path.cwd()


class InstallOptions(BaseModel):
    """Where SteamCMD is installed and whether to always fetch a fresh copy."""

    model_config = ConfigDict(frozen=True)

    install_directory: Path | None = None
    force_redownload: bool = False

    def resolve_install_directory(self) -> Path:
        """The absolute install directory; relative paths are taken from the cwd."""
        if self.install_directory is not None:
            return self.install_directory.expanduser().absolute()
        return get_program_base_dir() / STEAMCMD_DIRECTORY_NAME


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    install_directory: Path | None = None
    force_redownload: bool = False
    log_dir: Path | None = None
    enable_json_log: bool = False

    # Internal field not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("install_directory", "log_dir", mode="before")
    @classmethod
    def expand_user_paths(cls, v):
        """Treats empty values as unset and expands '~'."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return Path(v).expanduser()

    @model_validator(mode="after")
    def validate_json_logging(self) -> "AppConfig":
        if self.enable_json_log and self.log_dir is None:
            raise ValueError("'enable_json_log' requires 'log_dir' to be set.")
        return self

    def to_install_options(self) -> InstallOptions:
        return InstallOptions(
            install_directory=self.install_directory,
            force_redownload=self.force_redownload,
        )

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        return {key for key in cls.model_fields if key != "config_path"}
