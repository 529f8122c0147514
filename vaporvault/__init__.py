"""
VaporVault: provisions SteamCMD on demand and runs commands against it.
"""

__version__ = "0.1.0"
