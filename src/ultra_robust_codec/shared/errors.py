"""Error taxonomy for the encoding engine.

Every failure raised by the engine is a ``CodecError`` subclass carrying the
operation name, the formats involved and structured details (offsets,
expected and actual values) so callers can render diagnostics without any
engine-side formatting.
"""

from enum import Enum
from typing import Any, Dict, Optional


class Utf8ErrorKind(Enum):
    """Subcodes reported by the UTF-8 validation state machine."""

    OVERLONG_ENCODING = "overlong_encoding"
    INVALID_CONTINUATION = "invalid_continuation"
    SURROGATE_CODEPOINT = "surrogate_codepoint"
    OUT_OF_RANGE = "out_of_range"
    TRUNCATED_SEQUENCE = "truncated_sequence"


class Utf16ErrorKind(Enum):
    """Subcodes reported by the UTF-16 surrogate pairing validator."""

    UNPAIRED_HIGH_SURROGATE = "unpaired_high_surrogate"
    UNPAIRED_LOW_SURROGATE = "unpaired_low_surrogate"
    TRUNCATED_SEQUENCE = "truncated_sequence"


def _format_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class CodecError(Exception):
    """Base exception for all engine errors.

    Attributes:
        code: Stable snake-case error kind
        operation: Operation that failed (encode, decode, detect, normalize, bom)
        input_format: Format of the input, when relevant
        output_format: Format of the output, when relevant
        details: Structured context (offsets, expected and actual values)
    """

    code = "codec_error"

    def __init__(
        self,
        message: str,
        operation: str = "decode",
        input_format: Optional[Any] = None,
        output_format: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.input_format = input_format
        self.output_format = output_format
        self.details: Dict[str, Any] = dict(details or {})

    @property
    def is_security_violation(self) -> bool:
        """Whether the error reports a security limit breach."""
        return isinstance(self, SecurityViolation)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a serialisable dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "operation": self.operation,
            "input_format": _format_value(self.input_format),
            "output_format": _format_value(self.output_format),
            "details": {
                key: _format_value(value) for key, value in self.details.items()
            },
        }


# Validation errors

class ValidationError(CodecError):
    """Input or option validation failure."""

    code = "validation_error"


class InvalidEncoding(ValidationError):
    """Input does not conform to the declared format."""

    code = "invalid_encoding"


class UnsupportedFormat(ValidationError):
    """Format is not supported for the requested operation."""

    code = "unsupported_format"


class InvalidOptions(ValidationError, ValueError):
    """Option object failed validation."""

    code = "invalid_options"

    def __init__(self, message: str, field_name: Optional[str] = None,
                 operation: str = "config") -> None:
        super().__init__(
            message,
            operation=operation,
            details={"field": field_name} if field_name else None,
        )
        self.field_name = field_name


# UTF validation errors

class UtfValidationError(CodecError):
    """Malformed UTF byte sequence."""

    code = "utf_validation_error"

    def __init__(self, message: str, subcode: Enum, byte_offset: int,
                 **kwargs: Any) -> None:
        details = dict(kwargs.pop("details", None) or {})
        details.update({"subcode": subcode.value, "byte_offset": byte_offset})
        super().__init__(message, details=details, **kwargs)
        self.subcode = subcode
        self.byte_offset = byte_offset


class InvalidUtf8(UtfValidationError):
    """Malformed UTF-8 sequence."""

    code = "invalid_utf8"


class InvalidUtf16(UtfValidationError):
    """Malformed UTF-16 surrogate pairing."""

    code = "invalid_utf16"


# Security violations

class SecurityViolation(CodecError):
    """A configured safety limit was exceeded."""

    code = "security_violation"


class BufferOverflow(SecurityViolation):
    """Output would exceed the configured size limit."""

    code = "buffer_overflow"

    def __init__(self, message: str, actual: int, maximum: int,
                 **kwargs: Any) -> None:
        details = dict(kwargs.pop("details", None) or {})
        details.update({"actual": actual, "max": maximum})
        super().__init__(message, details=details, **kwargs)
        self.actual = actual
        self.maximum = maximum


class EncodingBomb(SecurityViolation):
    """Output/input expansion ratio exceeds the configured threshold."""

    code = "encoding_bomb"

    def __init__(self, message: str, ratio: float, max_ratio: float,
                 **kwargs: Any) -> None:
        details = dict(kwargs.pop("details", None) or {})
        details.update({"ratio": ratio, "max_ratio": max_ratio})
        super().__init__(message, details=details, **kwargs)
        self.ratio = ratio
        self.max_ratio = max_ratio


class ExcessiveCombiningMarks(SecurityViolation):
    """Too many consecutive combining marks on one base character."""

    code = "excessive_combining_marks"

    def __init__(self, position: int, count: int, maximum: int) -> None:
        super().__init__(
            f"{count} combining marks at position {position} exceed the "
            f"maximum of {maximum}",
            operation="normalize",
            details={"position": position, "count": count, "max": maximum},
        )
        self.position = position
        self.count = count
        self.maximum = maximum


class ZeroWidthCharacter(SecurityViolation):
    """Zero-width character found while zero-width rejection is enabled."""

    code = "zero_width_character"

    def __init__(self, codepoint: int, position: int) -> None:
        super().__init__(
            f"Zero-width character U+{codepoint:04X} at position {position}",
            operation="normalize",
            details={"codepoint": codepoint, "position": position},
        )
        self.codepoint = codepoint
        self.position = position


class BidiControlCharacter(SecurityViolation):
    """Bidirectional override, isolate or mark character found."""

    code = "bidi_control_character"

    def __init__(self, codepoint: int, position: int) -> None:
        super().__init__(
            f"Bidi control character U+{codepoint:04X} at position {position}",
            operation="normalize",
            details={"codepoint": codepoint, "position": position},
        )
        self.codepoint = codepoint
        self.position = position


# BOM errors

class BomError(CodecError):
    """Byte-order-mark handling failure."""

    code = "bom_error"


class BomMismatch(BomError):
    """Detected BOM conflicts with the expected encoding."""

    code = "bom_mismatch"

    def __init__(self, expected: Any, actual: Any) -> None:
        super().__init__(
            f"BOM mismatch: expected {_format_value(expected)}, "
            f"found {_format_value(actual)}",
            operation="bom",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class MultipleBoms(BomError):
    """More than one consecutive byte-order mark at the start of the data."""

    code = "multiple_boms"

    def __init__(self, count: int) -> None:
        super().__init__(
            f"Found {count} consecutive byte-order marks",
            operation="bom",
            details={"count": count},
        )
        self.count = count


# Detection errors

class DetectionError(CodecError):
    """Encoding detection failure."""

    code = "detection_error"


class DetectionFailed(DetectionError):
    """Detection confidence is below the required minimum."""

    code = "detection_failed"

    def __init__(self, confidence: float, min_confidence: float,
                 encoding: str = "unknown") -> None:
        super().__init__(
            f"Detection confidence {confidence:.2f} for '{encoding}' is below "
            f"the required {min_confidence:.2f}",
            operation="detect",
            details={
                "confidence": confidence,
                "min_confidence": min_confidence,
                "detected_encoding": encoding,
            },
        )
        self.confidence = confidence
        self.min_confidence = min_confidence
        self.encoding = encoding
