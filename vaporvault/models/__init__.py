"""
Data Models Layer.

This package contains the data structures used throughout the application,
such as configuration, installation options and execution results.
"""

from .options import AppConfig, InstallOptions
from .result import SteamCmdResult

__all__ = ["AppConfig", "InstallOptions", "SteamCmdResult"]
