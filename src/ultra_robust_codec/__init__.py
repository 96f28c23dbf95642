"""Ultra-Robust Codec.

An encoding engine for binary-to-text codecs, character-encoding detection
and transcoding, hardened Unicode normalization and byte-order-mark handling.

Progressive API Disclosure:
- Level 1: Simple functions - encode(), decode(), detect(), normalize()
- Level 2: BOM operations and the decode_to_utf8() / transcode() pipelines
- Level 3: Option objects, EngineConfig and resumable stream decoders
"""

__version__ = "0.1.0"
__author__ = "Ultra Robust Codec Team"

# Progressive API disclosure - Level 1: Simple functions
from .codec import decode, encode
from .character import detect, normalize

# Level 2: BOM operations and composed pipelines
from .character import add_bom, correct_bom, detect_bom, remove_bom, validate_bom
from .api import decode_to_utf8, transcode

# Level 3: Configuration and streaming
from .codec import Utf8StreamDecoder, Utf16StreamDecoder
from .shared.config import (
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
from .shared.errors import (
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
from .shared.formats import BomType, EncodingFormat

# Core result objects for all API levels
from .shared.result import (
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
from .shared.telemetry import CollectingSink, MetricEvent, MetricsSink

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions
    "encode",
    "decode",
    "detect",
    "normalize",

    # Level 2: BOM operations and pipelines
    "detect_bom",
    "remove_bom",
    "add_bom",
    "validate_bom",
    "correct_bom",
    "decode_to_utf8",
    "transcode",

    # Level 3: Configuration and streaming
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
    "Utf8StreamDecoder",
    "Utf16StreamDecoder",

    # Formats
    "EncodingFormat",
    "BomType",

    # Result objects
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

    # Metrics
    "MetricEvent",
    "MetricsSink",
    "CollectingSink",

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
]
