"""
Error tracking.

Captures exceptions and messages with structured context and writes them
through the standard logger. Record- and entity-level sync failures go through
here so that each log line carries provider, operation, entity type and ids.
"""

import logging
from typing import Any, Dict, Optional

from ledgersync.core.utils import Clock, utc_now

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ErrorTracker:

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    def capture_exception(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        error_data = {
            "message": str(error),
            "type": type(error).__name__,
            "timestamp": self.clock().isoformat(),
            "context": context or {},
        }
        logger.error(
            f"Error captured: {error_data['type']}: {error_data['message']} context={error_data['context']}",
            exc_info=(type(error), error, error.__traceback__) if error.__traceback__ else None,
        )
        return error_data

    def capture_message(self, message: str, level: str = "info", context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        message_data = {
            "message": message,
            "level": level,
            "timestamp": self.clock().isoformat(),
            "context": context or {},
        }
        logger.log(_LEVELS.get(level, logging.INFO), f"{message} context={message_data['context']}")
        return message_data

    def track_provider_operation(
        self,
        provider: str,
        operation: str,
        success: bool,
        error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        operation_context = {"provider": provider, "operation": operation, **(context or {})}
        if success:
            logger.debug(f"{provider} {operation} succeeded {operation_context}")
        elif error is not None:
            self.capture_exception(error, operation_context)
        else:
            self.capture_message(f"{provider} {operation} failed", "error", operation_context)
