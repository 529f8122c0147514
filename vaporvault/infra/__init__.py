"""
Infrastructure Layer.

Leaf services for platform detection, filesystem access and HTTP downloads.
"""

from .filesystem import FileSystem
from .http_downloader import HttpDownloader
from .platform_service import PlatformService

__all__ = ["FileSystem", "HttpDownloader", "PlatformService"]
