"""
Structured events raised while validating SteamCMD downloads, and the
handlers that consume them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Protocol

from vaporvault.utils.structured_logger import StructuredLogger


class EventLevel(IntEnum):
    """Severity of a validation event; values match the ``logging`` levels."""

    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


@dataclass(frozen=True)
class ValidationEvent:
    """A single observation made by the validator."""

    component: str
    message: str
    level: EventLevel = EventLevel.INFO
    exception: BaseException | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ValidationEventHandler(Protocol):
    def handle_event(self, event: ValidationEvent) -> None: ...


class LoggingValidationEventHandler:
    """
    Forwards validation events to a standard logger and, optionally, to a
    structured JSON-lines logger.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        structured_logger: StructuredLogger | None = None,
    ):
        self._logger = logger or logging.getLogger("vaporvault.validation")
        self._structured = structured_logger

    def handle_event(self, event: ValidationEvent) -> None:
        stamp = event.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        self._logger.log(
            event.level,
            f"[{stamp}] [{event.component}] {event.message}",
            exc_info=event.exception,
            extra={"component": event.component, "properties": event.properties},
        )

        if self._structured:
            context = dict(event.properties)
            if event.exception:
                context["exception"] = repr(event.exception)
            self._structured.log(
                event.level,
                event.message,
                component=event.component,
                timestamp=event.timestamp.isoformat(),
                **context,
            )
