"""
Core provisioning and execution engine.

The `SteamCmdLocator` makes sure SteamCMD is installed and valid, and the
`SteamCmdService` runs commands against it. `create_services` wires both
with their default collaborators.
"""

from .container import SteamCmdServices, create_services
from .locator import SteamCmdLocator
from .service import SteamCmdService

__all__ = ["SteamCmdLocator", "SteamCmdService", "SteamCmdServices", "create_services"]
