"""Metrics sink interface and operation recorder.

The engine reports one ``MetricEvent`` per public operation through an
optional, caller-injected sink. A missing or failing sink never changes the
outcome of an operation.
"""

import time
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Dict, List, Optional, Protocol, Type

from .errors import CodecError
from .logging import get_logger

MS_PER_SECOND = 1000


@dataclass(frozen=True)
class MetricEvent:
    """Structured record of one engine operation."""

    operation: str
    format: Optional[str]
    duration_ms: float
    input_size: int = 0
    output_size: int = 0
    success: bool = True
    error_code: Optional[str] = None
    security_violation: bool = False
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary representation."""
        return {
            "operation": self.operation,
            "format": self.format,
            "duration_ms": self.duration_ms,
            "input_size": self.input_size,
            "output_size": self.output_size,
            "success": self.success,
            "error_code": self.error_code,
            "security_violation": self.security_violation,
            "correlation_id": self.correlation_id,
        }


class MetricsSink(Protocol):
    """Receiver for engine metric events."""

    def emit(self, event: MetricEvent) -> None:
        """Handle one event."""


@dataclass
class CollectingSink:
    """In-memory sink that keeps every event it receives."""

    events: List[MetricEvent] = field(default_factory=list)

    def emit(self, event: MetricEvent) -> None:
        """Store the event."""
        self.events.append(event)

    def by_operation(self, operation: str) -> List[MetricEvent]:
        """Events recorded for one operation."""
        return [event for event in self.events if event.operation == operation]


class OperationRecorder:
    """Times an operation and emits a metric event when it completes.

    Examples:
        >>> with OperationRecorder("decode", "base64", sink) as recorder:
        ...     recorder.input_size = len(payload)
        ...     result = do_decode(payload)
        ...     recorder.output_size = len(result)
    """

    def __init__(
        self,
        operation: str,
        fmt: Optional[Any] = None,
        sink: Optional[MetricsSink] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.format = getattr(fmt, "value", fmt)
        self.sink = sink
        self.correlation_id = correlation_id
        self.input_size = 0
        self.output_size = 0
        self.logger = get_logger(__name__, correlation_id, operation)
        self._start = 0.0

    def __enter__(self) -> "OperationRecorder":
        self._start = time.perf_counter()
        self.logger.debug(
            "Operation started",
            extra={"operation": self.operation, "format": self.format},
        )
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        duration_ms = (time.perf_counter() - self._start) * MS_PER_SECOND
        error_code = None
        security_violation = False
        if isinstance(exc, CodecError):
            error_code = exc.code
            security_violation = exc.is_security_violation
            self.logger.codec_error(exc)
        elif exc is not None:
            error_code = type(exc).__name__

        event = MetricEvent(
            operation=self.operation,
            format=self.format,
            duration_ms=duration_ms,
            input_size=self.input_size,
            output_size=self.output_size,
            success=exc is None,
            error_code=error_code,
            security_violation=security_violation,
            correlation_id=self.correlation_id,
        )
        self.logger.debug("Operation finished", extra=event.to_dict())
        self._emit(event)

    def _emit(self, event: MetricEvent) -> None:
        if self.sink is None:
            return
        try:
            self.sink.emit(event)
        except Exception:
            # A broken sink must not change the operation outcome
            self.logger.warning(
                "Metrics sink failed",
                extra={"operation": self.operation},
                exc_info=True,
            )
