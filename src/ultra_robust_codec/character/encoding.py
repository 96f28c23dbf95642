"""Multi-stage encoding detection.

Detection runs a fixed cascade over a bounded sample: BOM signature, UTF-8
validation, NULL-byte parity for UTF-16 and an ASCII check. When every stage
gives up the result is ``unknown``, optionally ranked by a caller supplied
legacy analyzer.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..codec.unicode import Utf8StreamDecoder
from ..shared.config import DetectOptions, ErrorMode
from ..shared.errors import (
    DetectionFailed,
    InvalidEncoding,
    InvalidOptions,
    InvalidUtf8,
)
from ..shared.formats import EncodingFormat, match_bom_signature
from ..shared.logging import get_logger
from ..shared.result import (
    UNKNOWN_ENCODING,
    ConfidenceTier,
    DetectionResult,
    EncodingCandidate,
)
from ..shared.telemetry import MetricsSink, OperationRecorder

# Confidence scores per stage
CONFIDENCE_BOM = 1.0
CONFIDENCE_UTF8_MULTIBYTE = 0.95
CONFIDENCE_NULL_PARITY_MAX = 0.85
CONFIDENCE_ASCII = 0.4
CONFIDENCE_ASCII_CANDIDATE = 0.4
CONFIDENCE_LATIN1_CANDIDATE = 0.2

# Minimum NULL parity consistency for a UTF-16 candidate
NULL_PARITY_MIN_RATIO = 0.3

UTF16_UNIT = 2

_NON_ASCII = re.compile(rb"[\x80-\xff]")


@dataclass(frozen=True)
class StageResult:
    """Outcome of one detection stage.

    Attributes:
        encoding: Encoding name chosen by the stage
        confidence: Confidence score from 0.0 to 1.0
        candidates: Ranked candidates the stage proposes
        warnings: Observations attached to the final result
        bom_bytes: Signature bytes when the BOM stage decided
    """

    encoding: str
    confidence: float
    candidates: Sequence[EncodingCandidate] = ()
    warnings: Sequence[str] = ()
    bom_bytes: Optional[bytes] = None


class BomStage:
    """Byte-order-mark signature stage."""

    def detect(self, data: bytes) -> Optional[StageResult]:
        """Return a certain result when the data starts with a BOM."""
        bom_type = match_bom_signature(data)
        if bom_type is None:
            return None
        return StageResult(
            encoding=bom_type.value,
            confidence=CONFIDENCE_BOM,
            candidates=(
                EncodingCandidate(bom_type.value, CONFIDENCE_BOM, "bom"),
            ),
            bom_bytes=bom_type.signature,
        )


class Utf8Stage:
    """UTF-8 validation stage.

    The sample is validated with the resumable decoder so a multi-byte
    sequence cut by the sample boundary is not mistaken for an error.
    """

    def detect(self, sample: bytes, complete: bool) -> Optional[StageResult]:
        """Return utf8 when the sample is valid and not pure ASCII.

        Args:
            sample: Bytes inspected
            complete: Whether the sample holds the entire input
        """
        decoder = Utf8StreamDecoder(ErrorMode.STRICT)
        try:
            decoder.feed(sample, final=complete)
        except InvalidUtf8:
            return None

        if not _NON_ASCII.search(sample, 0, decoder.bytes_consumed):
            return None
        return StageResult(
            encoding=EncodingFormat.UTF8.value,
            confidence=CONFIDENCE_UTF8_MULTIBYTE,
            candidates=(
                EncodingCandidate(
                    EncodingFormat.UTF8.value,
                    CONFIDENCE_UTF8_MULTIBYTE,
                    "valid_utf8_multibyte",
                ),
            ),
        )


class NullParityStage:
    """UTF-16 detection from the position of NULL bytes.

    ASCII-range text in UTF-16 has a NULL in the high-order byte of each code
    unit: offset 1 of the unit for little endian, offset 0 for big endian.
    The consistency ratio is the share of units with a NULL in the expected
    position minus the share with a NULL in the opposite one.
    """

    def detect(self, sample: bytes) -> Optional[StageResult]:
        """Return the best UTF-16 candidate, None below the minimum ratio."""
        units = len(sample) // UTF16_UNIT
        if units == 0:
            return None

        even = sample[0:units * UTF16_UNIT:UTF16_UNIT].count(0)
        odd = sample[1:units * UTF16_UNIT:UTF16_UNIT].count(0)
        ratios = {
            EncodingFormat.UTF16LE.value: (odd - even) / units,
            EncodingFormat.UTF16BE.value: (even - odd) / units,
        }

        candidates = [
            EncodingCandidate(
                encoding,
                CONFIDENCE_NULL_PARITY_MAX * min(1.0, ratio),
                f"null_parity:{ratio:.2f}",
            )
            for encoding, ratio in ratios.items()
            if ratio >= NULL_PARITY_MIN_RATIO
        ]
        if not candidates:
            return None

        candidates.sort(key=lambda candidate: candidate.confidence, reverse=True)
        best = candidates[0]
        return StageResult(
            encoding=best.encoding,
            confidence=best.confidence,
            candidates=tuple(candidates),
        )


class AsciiStage:
    """Pure ASCII stage; ASCII is valid in several encodings."""

    def detect(self, sample: bytes) -> Optional[StageResult]:
        """Return a low-confidence utf8 guess for pure ASCII samples."""
        if _NON_ASCII.search(sample):
            return None
        return StageResult(
            encoding=EncodingFormat.UTF8.value,
            confidence=CONFIDENCE_ASCII,
            candidates=(
                EncodingCandidate(
                    EncodingFormat.UTF8.value, CONFIDENCE_ASCII, "ascii_subset"
                ),
                EncodingCandidate(
                    EncodingFormat.ASCII.value,
                    CONFIDENCE_ASCII_CANDIDATE,
                    "ascii_subset",
                ),
                EncodingCandidate(
                    EncodingFormat.LATIN1.value,
                    CONFIDENCE_LATIN1_CANDIDATE,
                    "ascii_subset",
                ),
            ),
            warnings=("ascii_ambiguous",),
        )


def _as_candidate(item: object) -> EncodingCandidate:
    if isinstance(item, EncodingCandidate):
        return item
    try:
        encoding, confidence, *rest = item  # type: ignore[misc]
        return EncodingCandidate(str(encoding), float(confidence),
                                 rest[0] if rest else "legacy_analyzer")
    except (TypeError, ValueError) as e:
        raise InvalidOptions(
            f"legacy_analyzer returned an invalid candidate {item!r}: {e}",
            field_name="legacy_analyzer",
            operation="detect",
        ) from e


class EncodingDetector:
    """Cascading encoding detector.

    Stages run in strict precedence; the first stage with an answer decides.
    """

    def __init__(self, options: Optional[DetectOptions] = None,
                 correlation_id: Optional[str] = None) -> None:
        """Initialize detection stages."""
        self.options = options or DetectOptions()
        self.logger = get_logger(__name__, correlation_id, "detect")
        self.bom_stage = BomStage()
        self.utf8_stage = Utf8Stage()
        self.null_parity_stage = NullParityStage()
        self.ascii_stage = AsciiStage()

    def _run_stages(self, data: bytes) -> StageResult:
        bom_result = self.bom_stage.detect(data)
        if bom_result is not None:
            return bom_result

        sample = data[:self.options.max_sample_size]
        complete = len(sample) == len(data)

        result = self.utf8_stage.detect(sample, complete)
        if result is None:
            result = self.null_parity_stage.detect(sample)
        if result is None:
            result = self.ascii_stage.detect(sample)
        if result is None:
            result = self._unknown(sample)
        return result

    def _unknown(self, sample: bytes) -> StageResult:
        candidates: List[EncodingCandidate] = []
        analyzer = self.options.legacy_analyzer
        if analyzer is not None:
            candidates = [_as_candidate(item) for item in analyzer(sample)]
            candidates.sort(key=lambda candidate: candidate.confidence,
                            reverse=True)
        return StageResult(
            encoding=UNKNOWN_ENCODING,
            confidence=0.0,
            candidates=tuple(candidates),
            warnings=("no_stage_matched",),
        )

    def detect(self, data: Union[bytes, bytearray, memoryview]) -> DetectionResult:
        """Detect the encoding of ``data``.

        Args:
            data: Bytes to analyze; only ``max_sample_size`` bytes after the
                BOM check are inspected

        Returns:
            DetectionResult with ranked candidates

        Raises:
            DetectionFailed: If confidence is below ``min_confidence``
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidEncoding(
                f"detect expects bytes, got {type(data).__name__}",
                operation="detect",
                details={"expected": "bytes", "actual": type(data).__name__},
            )
        payload = data if isinstance(data, bytes) else bytes(data)
        stage = self._run_stages(payload)

        candidates = list(stage.candidates)
        if ConfidenceTier.from_confidence(stage.confidence) is ConfidenceTier.HIGH:
            candidates = candidates[:1]
        else:
            candidates = candidates[:self.options.max_candidates]

        self.logger.debug(
            "Encoding detected",
            extra={
                "encoding": stage.encoding,
                "confidence": stage.confidence,
                "candidates": [c.encoding for c in candidates],
            },
        )

        if stage.confidence < self.options.min_confidence:
            raise DetectionFailed(
                stage.confidence, self.options.min_confidence, stage.encoding
            )

        return DetectionResult(
            encoding=stage.encoding,
            confidence=stage.confidence,
            bom_detected=stage.bom_bytes is not None,
            bom_bytes=stage.bom_bytes,
            candidates=candidates,
            warnings=list(stage.warnings),
        )


def detect(
    data: Union[bytes, bytearray, memoryview],
    options: Optional[DetectOptions] = None,
    *,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> DetectionResult:
    """Detect the encoding of a byte buffer.

    Args:
        data: Bytes to analyze
        options: Detect options, defaults when None
        metrics: Sink receiving one event for the call
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        DetectionResult

    Raises:
        DetectionFailed: If confidence is below ``min_confidence``

    Examples:
        >>> detect(b"\\xef\\xbb\\xbfHi").encoding
        'utf8'
    """
    with OperationRecorder("detect", None, metrics, correlation_id) as recorder:
        detector = EncodingDetector(options, correlation_id)
        result = detector.detect(data)
        recorder.input_size = min(len(data), detector.options.max_sample_size)
        recorder.format = result.encoding
        return result
