"""Shared vocabulary for the encoding engine.

This package provides the format enumeration, error taxonomy, option objects,
result types, logging, metrics and checksum hooks used by every component.
"""

from .errors import (
    BidiControlCharacter,
    BomError,
    BomMismatch,
    BufferOverflow,
    CodecError,
    DetectionError,
    DetectionFailed,
    EncodingBomb,
    ExcessiveCombiningMarks,
    InvalidEncoding,
    InvalidOptions,
    InvalidUtf8,
    InvalidUtf16,
    MultipleBoms,
    SecurityViolation,
    UnsupportedFormat,
    Utf8ErrorKind,
    Utf16ErrorKind,
    UtfValidationError,
    ValidationError,
    ZeroWidthCharacter,
)
from .formats import BomType, EncodingFormat
from .config import (
    BomOptions,
    DecodeOptions,
    DetectOptions,
    EncodeOptions,
    EngineConfig,
    ErrorMode,
    LetterCase,
    MismatchPolicy,
    NormalizationProfile,
    NormalizeOptions,
)
from .result import (
    BomAction,
    BomCorrection,
    BomResult,
    ConfidenceTier,
    DecodeResult,
    DetectionResult,
    EncodeResult,
    EncodingCandidate,
    NormalizationResult,
    SemanticChange,
)
from .logging import CorrelationLogger, get_logger
from .telemetry import CollectingSink, MetricEvent, MetricsSink, OperationRecorder
from .checksum import ChecksumProvider, hashlib_checksum

__all__ = [
    # Errors
    "CodecError",
    "ValidationError",
    "InvalidEncoding",
    "UnsupportedFormat",
    "InvalidOptions",
    "UtfValidationError",
    "InvalidUtf8",
    "InvalidUtf16",
    "Utf8ErrorKind",
    "Utf16ErrorKind",
    "SecurityViolation",
    "BufferOverflow",
    "EncodingBomb",
    "ExcessiveCombiningMarks",
    "ZeroWidthCharacter",
    "BidiControlCharacter",
    "BomError",
    "BomMismatch",
    "MultipleBoms",
    "DetectionError",
    "DetectionFailed",
    # Formats
    "EncodingFormat",
    "BomType",
    # Options
    "EncodeOptions",
    "DecodeOptions",
    "DetectOptions",
    "NormalizeOptions",
    "BomOptions",
    "EngineConfig",
    "ErrorMode",
    "LetterCase",
    "MismatchPolicy",
    "NormalizationProfile",
    # Results
    "EncodeResult",
    "DecodeResult",
    "DetectionResult",
    "EncodingCandidate",
    "ConfidenceTier",
    "NormalizationResult",
    "SemanticChange",
    "BomResult",
    "BomCorrection",
    "BomAction",
    # Collaborators
    "CorrelationLogger",
    "get_logger",
    "MetricEvent",
    "MetricsSink",
    "CollectingSink",
    "OperationRecorder",
    "ChecksumProvider",
    "hashlib_checksum",
]
