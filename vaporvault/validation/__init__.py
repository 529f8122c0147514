"""
Validation Layer.

Integrity checks for downloaded archives, extracted executables and disk
space, reported as structured events.
"""

from .events import (
    EventLevel,
    LoggingValidationEventHandler,
    ValidationEvent,
    ValidationEventHandler,
)
from .validator import SteamCmdValidator

__all__ = [
    "EventLevel",
    "LoggingValidationEventHandler",
    "SteamCmdValidator",
    "ValidationEvent",
    "ValidationEventHandler",
]
