"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from enum import Enum


class VaporVaultError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(VaporVaultError):
    """Raised for issues related to configuration loading or validation."""


class ProvisioningError(VaporVaultError):
    """Raised when SteamCMD cannot be made available on the local machine."""


class DownloadError(ProvisioningError):
    """Raised when the SteamCMD archive could not be fetched."""


class ExtractionError(ProvisioningError):
    """Raised when the SteamCMD archive could not be unpacked."""


class ValidationErrorKind(Enum):
    """The specific check that a validation failure came from."""

    NOT_FOUND = "not_found"
    UNSUPPORTED_FORMAT = "unsupported_format"
    EMPTY = "empty"
    CORRUPTED = "corrupted"
    TOO_SMALL = "too_small"
    INVALID_HEADER = "invalid_header"
    INSUFFICIENT_SPACE = "insufficient_space"
    GENERIC = "generic"


class ValidationError(ProvisioningError):
    """
    Raised when a downloaded archive, an extracted executable or the target
    disk fails an integrity check.

    The lower-level exception, if any, is available as ``__cause__``.
    """

    def __init__(
        self, message: str, kind: ValidationErrorKind = ValidationErrorKind.GENERIC
    ):
        super().__init__(message)
        self.kind = kind
