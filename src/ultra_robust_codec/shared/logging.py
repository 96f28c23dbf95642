"""Structured logging utilities for the encoding engine.

Loggers attach the component name and an optional caller-supplied correlation
ID to every record. The library never installs handlers; applications decide
where records go.
"""

import logging
from typing import Any, Dict, Optional

from .errors import CodecError


class CorrelationLogger:
    """Logger that tags records with correlation ID and component."""

    def __init__(
        self,
        name: str,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None
    ) -> None:
        """Initialize correlation logger.

        Args:
            name: Logger name (typically __name__)
            correlation_id: Optional correlation ID supplied by the caller
            component: Component name, defaults to the last name segment
        """
        self.logger = logging.getLogger(name)
        self.correlation_id = correlation_id
        self.component = component or name.rsplit(".", 1)[-1]

    def _extra(self, extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        combined = {
            "component": self.component,
            "correlation_id": self.correlation_id,
        }
        if extra:
            combined.update(extra)
        return combined

    def is_enabled_for(self, level: int) -> bool:
        """Whether records at ``level`` would be emitted."""
        return self.logger.isEnabledFor(level)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log debug message with correlation info."""
        self.logger.debug(message, extra=self._extra(extra))

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log info message with correlation info."""
        self.logger.info(message, extra=self._extra(extra))

    def warning(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        """Log warning message with correlation info."""
        self.logger.warning(message, extra=self._extra(extra), exc_info=exc_info)

    def error(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = True
    ) -> None:
        """Log error message with correlation info."""
        self.logger.error(message, extra=self._extra(extra), exc_info=exc_info)

    def codec_error(self, error: CodecError) -> None:
        """Log an engine error.

        Security violations are logged at WARNING, everything else at DEBUG
        since the caller receives the exception anyway.
        """
        extra = {"error": error.to_dict()}
        if error.is_security_violation:
            self.warning(f"Security limit hit: {error.code}", extra=extra)
        else:
            self.debug(f"Operation failed: {error.code}", extra=extra)


def get_logger(
    name: str,
    correlation_id: Optional[str] = None,
    component: Optional[str] = None
) -> CorrelationLogger:
    """Get a correlation-aware logger instance.

    Args:
        name: Logger name (typically __name__)
        correlation_id: Optional correlation ID supplied by the caller
        component: Component name for structured logging

    Returns:
        CorrelationLogger instance
    """
    return CorrelationLogger(name, correlation_id, component)
