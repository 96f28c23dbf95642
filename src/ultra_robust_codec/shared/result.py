"""Result objects returned by the encoding engine.

All results are immutable value objects created per call and owned by the
caller. Size fields are always measured in one unit per result: bytes for
binary results and Unicode scalar values for text results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import NormalizationProfile
from .formats import BomType, EncodingFormat

# Confidence tier thresholds
CONFIDENCE_HIGH_THRESHOLD = 0.90
CONFIDENCE_MEDIUM_THRESHOLD = 0.50

UNKNOWN_ENCODING = "unknown"


class ConfidenceTier(Enum):
    """Coarse bucket for a detection confidence score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_confidence(cls, confidence: float) -> "ConfidenceTier":
        """Derive the tier from a confidence score."""
        if confidence >= CONFIDENCE_HIGH_THRESHOLD:
            return cls.HIGH
        if confidence >= CONFIDENCE_MEDIUM_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW


def _check_confidence(confidence: float) -> None:
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(
            f"Confidence must be between 0.0 and 1.0, got {confidence}"
        )


@dataclass(frozen=True)
class EncodeResult:
    """Result of a binary-to-text encode.

    Attributes:
        text: Encoded ASCII text
        format: Format used
        input_size: Input length in bytes
        output_size: Output length in bytes (the text is pure ASCII)
        warnings: Non-fatal observations
        checksum: Hex digest of the input when requested
        checksum_algorithm: Algorithm used for ``checksum``
    """

    text: str
    format: EncodingFormat
    input_size: int
    output_size: int
    warnings: List[str] = field(default_factory=list)
    checksum: Optional[str] = None
    checksum_algorithm: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate size fields."""
        if self.input_size < 0 or self.output_size < 0:
            raise ValueError("Sizes must be >= 0")


@dataclass(frozen=True)
class DecodeResult:
    """Result of a decode.

    For binary-to-text formats ``data`` holds the decoded bytes. For character
    encodings ``data`` holds the canonical UTF-8 bytes of the decoded text.

    Attributes:
        data: Decoded bytes
        format: Format actually used (differs from the request after fallback)
        input_size: Input length in bytes
        output_size: Output length in bytes
        corrections_applied: Number of repairs made in a non-strict mode
        warnings: Non-fatal observations
        checksum: Hex digest of ``data`` when requested
        checksum_algorithm: Algorithm used for ``checksum``
        checksum_verified: Outcome of an expected-checksum comparison
    """

    data: bytes
    format: EncodingFormat
    input_size: int
    output_size: int
    corrections_applied: int = 0
    warnings: List[str] = field(default_factory=list)
    checksum: Optional[str] = None
    checksum_algorithm: Optional[str] = None
    checksum_verified: Optional[bool] = None

    def __post_init__(self) -> None:
        """Validate size and correction fields."""
        if self.input_size < 0 or self.output_size < 0:
            raise ValueError("Sizes must be >= 0")
        if self.corrections_applied < 0:
            raise ValueError("corrections_applied must be >= 0")

    @property
    def text(self) -> str:
        """Decoded text for character-encoding results."""
        return self.data.decode("utf-8")


@dataclass(frozen=True)
class EncodingCandidate:
    """Single ranked detection candidate."""

    encoding: str
    confidence: float
    reason: str

    def __post_init__(self) -> None:
        """Validate confidence score range."""
        _check_confidence(self.confidence)


@dataclass(frozen=True)
class DetectionResult:
    """Ranked encoding guess for a byte sample.

    Attributes:
        encoding: Canonical encoding name (format value, utf32le, utf32be or
            ``unknown``)
        confidence: Confidence score from 0.0 to 1.0
        bom_detected: Whether a byte-order mark decided the result
        bom_bytes: The BOM bytes when one was detected
        candidates: Ranked alternatives, highest confidence first
        warnings: Non-fatal observations
    """

    encoding: str
    confidence: float
    bom_detected: bool = False
    bom_bytes: Optional[bytes] = None
    candidates: List[EncodingCandidate] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate confidence and BOM invariants."""
        _check_confidence(self.confidence)
        if self.bom_detected and self.confidence != 1.0:
            raise ValueError("A BOM-based detection must report confidence 1.0")
        scores = [candidate.confidence for candidate in self.candidates]
        if scores != sorted(scores, reverse=True):
            raise ValueError("Candidates must be sorted by descending confidence")

    @property
    def confidence_tier(self) -> ConfidenceTier:
        """Tier derived from ``confidence``."""
        return ConfidenceTier.from_confidence(self.confidence)

    @property
    def format(self) -> Optional[EncodingFormat]:
        """Detected encoding as an EncodingFormat, None if not representable."""
        for member in EncodingFormat:
            if member.value == self.encoding:
                return member
        return None

    @property
    def is_unknown(self) -> bool:
        """Whether detection gave up."""
        return self.encoding == UNKNOWN_ENCODING


@dataclass(frozen=True)
class SemanticChange:
    """A codepoint substitution recorded during normalization."""

    position: int
    original: str
    normalized: str
    reason: str


@dataclass(frozen=True)
class NormalizationResult:
    """Result of a normalization.

    Attributes:
        text: Normalized text
        profile: Profile applied
        input_length: Input length in Unicode scalar values
        output_length: Output length in Unicode scalar values
        semantic_changes: Substitutions that may change meaning
        warnings: Non-fatal observations
    """

    text: str
    profile: NormalizationProfile
    input_length: int
    output_length: int
    semantic_changes: List[SemanticChange] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def semantic_preserving(self) -> bool:
        """Whether no recorded substitution may have changed meaning."""
        return not self.semantic_changes


@dataclass(frozen=True)
class BomResult:
    """Outcome of BOM detection."""

    bom_type: Optional[BomType] = None
    byte_length: int = 0
    encoding_implied: Optional[EncodingFormat] = None

    @property
    def has_bom(self) -> bool:
        """Whether a BOM was found."""
        return self.bom_type is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary representation."""
        return {
            "bom_type": self.bom_type.value if self.bom_type else None,
            "byte_length": self.byte_length,
            "encoding_implied": (
                self.encoding_implied.value if self.encoding_implied else None
            ),
        }


class BomAction(Enum):
    """Action taken by a BOM correction."""

    UNCHANGED = "unchanged"
    STRIPPED = "stripped"
    INSERTED = "inserted"
    REPLACED = "replaced"


@dataclass(frozen=True)
class BomCorrection:
    """Result of a BOM correction."""

    data: bytes
    action: BomAction
    original_bom: BomResult
    warnings: List[str] = field(default_factory=list)
