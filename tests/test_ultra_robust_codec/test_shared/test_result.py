"""Tests for result value objects."""

import pytest

from ultra_robust_codec.shared.config import NormalizationProfile
from ultra_robust_codec.shared.formats import BomType, EncodingFormat
from ultra_robust_codec.shared.result import (
    BomResult,
    ConfidenceTier,
    DecodeResult,
    DetectionResult,
    EncodeResult,
    EncodingCandidate,
    NormalizationResult,
    SemanticChange,
)


class TestConfidenceTier:
    """Test suite for confidence tiers."""

    @pytest.mark.parametrize("confidence,tier", [
        (1.0, ConfidenceTier.HIGH),
        (0.9, ConfidenceTier.HIGH),
        (0.85, ConfidenceTier.MEDIUM),
        (0.5, ConfidenceTier.MEDIUM),
        (0.4, ConfidenceTier.LOW),
        (0.0, ConfidenceTier.LOW),
    ])
    def test_from_confidence(self, confidence, tier):
        """Test tier thresholds."""
        assert ConfidenceTier.from_confidence(confidence) is tier


class TestEncodingCandidate:
    """Test suite for EncodingCandidate."""

    def test_confidence_range(self):
        """Test that confidence must lie in [0, 1]."""
        with pytest.raises(ValueError, match="Confidence must be between"):
            EncodingCandidate("utf8", 1.2, "x")


class TestDetectionResult:
    """Test suite for DetectionResult."""

    def test_bom_requires_full_confidence(self):
        """Test that BOM detections report confidence 1.0."""
        with pytest.raises(ValueError, match="confidence 1.0"):
            DetectionResult("utf8", 0.9, bom_detected=True, bom_bytes=b"\xef\xbb\xbf")

    def test_candidates_must_be_sorted(self):
        """Test that candidates are ranked by descending confidence."""
        with pytest.raises(ValueError, match="sorted"):
            DetectionResult("utf8", 0.4, candidates=[
                EncodingCandidate("latin1", 0.2, "x"),
                EncodingCandidate("utf8", 0.4, "x"),
            ])

    def test_format_and_tier(self):
        """Test derived properties."""
        result = DetectionResult("utf16le", 0.85)

        assert result.format is EncodingFormat.UTF16LE
        assert result.confidence_tier is ConfidenceTier.MEDIUM
        assert result.is_unknown is False

    def test_utf32_has_no_format(self):
        """Test encodings outside EncodingFormat map to None."""
        result = DetectionResult("utf32le", 1.0, bom_detected=True,
                                 bom_bytes=b"\xff\xfe\x00\x00")

        assert result.format is None

    def test_unknown(self):
        """Test the unknown encoding marker."""
        assert DetectionResult("unknown", 0.0).is_unknown is True


class TestDecodeResult:
    """Test suite for DecodeResult."""

    def test_text_property(self):
        """Test UTF-8 data is exposed as text."""
        result = DecodeResult("café".encode("utf-8"), EncodingFormat.LATIN1, 4, 5)

        assert result.text == "café"

    def test_negative_corrections_rejected(self):
        """Test the corrections counter cannot be negative."""
        with pytest.raises(ValueError, match="corrections_applied"):
            DecodeResult(b"", EncodingFormat.HEX, 0, 0, corrections_applied=-1)

    def test_negative_sizes_rejected(self):
        """Test size fields cannot be negative."""
        with pytest.raises(ValueError, match="Sizes"):
            EncodeResult("", EncodingFormat.HEX, -1, 0)


class TestNormalizationResult:
    """Test suite for NormalizationResult."""

    def test_semantic_preserving(self):
        """Test semantic preservation follows recorded changes."""
        clean = NormalizationResult("a", NormalizationProfile.NFC, 1, 1)
        changed = NormalizationResult(
            "fi", NormalizationProfile.NFKC, 1, 2,
            semantic_changes=[SemanticChange(0, "ﬁ", "fi", "ligature")],
        )

        assert clean.semantic_preserving is True
        assert changed.semantic_preserving is False


class TestBomResult:
    """Test suite for BomResult."""

    def test_empty_result(self):
        """Test the no-BOM result."""
        result = BomResult()

        assert result.has_bom is False
        assert result.to_dict() == {
            "bom_type": None,
            "byte_length": 0,
            "encoding_implied": None,
        }

    def test_to_dict(self):
        """Test serialization of a detected BOM."""
        result = BomResult(BomType.UTF8, 3, EncodingFormat.UTF8)

        assert result.to_dict() == {
            "bom_type": "utf8",
            "byte_length": 3,
            "encoding_implied": "utf8",
        }
