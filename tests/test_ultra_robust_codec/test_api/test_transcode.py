"""Tests for the detect-and-decode and transcode pipelines."""

import hashlib

import pytest

from ultra_robust_codec import decode_to_utf8, transcode
from ultra_robust_codec.shared.config import DecodeOptions, DetectOptions
from ultra_robust_codec.shared.errors import (
    DetectionFailed,
    InvalidEncoding,
    MultipleBoms,
    UnsupportedFormat,
)
from ultra_robust_codec.shared.formats import EncodingFormat
from ultra_robust_codec.shared.telemetry import CollectingSink


class TestDecodeToUtf8:
    """Test suite for decode_to_utf8."""

    def test_utf8_with_bom(self):
        """Test the BOM is removed and the detected encoding reported."""
        result = decode_to_utf8(b"\xef\xbb\xbfcaf\xc3\xa9")

        assert result.text == "café"
        assert result.data == b"caf\xc3\xa9"
        assert result.format is EncodingFormat.UTF8
        assert result.warnings[0] == "detected_encoding:utf8"
        assert result.input_size == 8

    def test_utf16le_with_bom(self):
        """Test UTF-16LE text behind its BOM."""
        data = b"\xff\xfe" + "Hi é".encode("utf-16-le")

        result = decode_to_utf8(data)

        assert result.text == "Hi é"
        assert result.format is EncodingFormat.UTF16LE
        assert result.input_size == len(data)

    def test_utf16be_without_bom(self):
        """Test UTF-16BE is found from its NULL pattern."""
        result = decode_to_utf8("hello world".encode("utf-16-be"))

        assert result.text == "hello world"
        assert result.warnings[0] == "detected_encoding:utf16be"

    def test_ascii_is_flagged(self):
        """Test pure ASCII decodes as UTF-8 with an ambiguity warning."""
        result = decode_to_utf8(b"plain")

        assert result.text == "plain"
        assert result.warnings == ["detected_encoding:utf8", "ascii_ambiguous"]

    def test_unknown_without_fallback(self):
        """Test detection failure surfaces when no fallback is given."""
        with pytest.raises(DetectionFailed):
            decode_to_utf8(b"\xe9t\xe9")

    def test_unknown_uses_first_fallback(self):
        """Test the first fallback format stands in for a failed detection."""
        options = DecodeOptions(fallback_formats=("cp1252", "latin1"))

        result = decode_to_utf8(b"\xe9t\xe9", decode_options=options)

        assert result.text == "été"
        assert result.format is EncodingFormat.CP1252
        assert result.warnings[:2] == ["detected_encoding:cp1252", "no_stage_matched"]

    def test_utf32_unsupported(self):
        """Test UTF-32 input is detected but cannot be decoded."""
        with pytest.raises(UnsupportedFormat):
            decode_to_utf8(b"\xff\xfe\x00\x00" + "A".encode("utf-32-le"))

    def test_repeated_boms(self):
        """Test repeated BOMs fail in strict mode and are removed otherwise."""
        data = b"\xef\xbb\xbf" * 2 + b"Hi"

        with pytest.raises(MultipleBoms):
            decode_to_utf8(data)

        result = decode_to_utf8(data, decode_options=DecodeOptions(on_error="replace"))
        assert result.text == "Hi"

    def test_min_confidence(self):
        """Test detect options reach the detection stage."""
        with pytest.raises(DetectionFailed):
            decode_to_utf8(b"plain", DetectOptions(min_confidence=0.5))

    def test_metrics_per_stage(self):
        """Test detection and decoding each emit an event."""
        sink = CollectingSink()

        decode_to_utf8(b"\xef\xbb\xbfHi", metrics=sink, correlation_id="c9")

        assert [e.operation for e in sink.events] == ["detect", "decode"]
        assert {e.correlation_id for e in sink.events} == {"c9"}


class TestTranscode:
    """Test suite for transcode."""

    def test_utf8_to_latin1(self):
        """Test a representable character changes its byte form."""
        result = transcode("café".encode("utf-8"), "utf8", "latin1")

        assert result.data == b"caf\xe9"
        assert result.format is EncodingFormat.LATIN1
        assert result.input_size == 5
        assert result.output_size == 4
        assert result.corrections_applied == 0

    def test_utf8_to_utf16le(self):
        """Test transcoding into UTF-16."""
        result = transcode(b"Hi", "utf-8", "utf-16le")

        assert result.data == b"H\x00i\x00"

    def test_unencodable_strict(self):
        """Test strict mode reports the first unencodable character."""
        with pytest.raises(InvalidEncoding) as exc_info:
            transcode("€".encode("utf-8"), "utf8", "latin1")

        assert exc_info.value.details == {"position": 0, "codepoint": 0x20AC}

    def test_unencodable_replaced(self):
        """Test replace mode substitutes '?' and counts it."""
        result = transcode("€".encode("utf-8"), "utf8", "latin1",
                           DecodeOptions(on_error="replace"))

        assert result.data == b"?"
        assert result.corrections_applied == 1
        assert result.warnings == ["unencodable_characters:1"]

    def test_unencodable_dropped(self):
        """Test ignore mode drops the character."""
        result = transcode("a€b".encode("utf-8"), "utf8", "ascii",
                           DecodeOptions(on_error="ignore"))

        assert result.data == b"ab"
        assert result.corrections_applied == 1

    @pytest.mark.parametrize("source,target", [
        ("base64", "utf8"),
        ("utf8", "hex"),
    ])
    def test_binary_formats_rejected(self, source, target):
        """Test only character encodings are accepted."""
        with pytest.raises(UnsupportedFormat, match="not a character encoding"):
            transcode(b"Hi", source, target)

    def test_checksum_over_target_bytes(self):
        """Test the checksum is computed on the transcoded output."""
        expected = hashlib.sha256(b"caf\xe9").hexdigest()
        options = DecodeOptions(checksum_algorithm="sha256", expected_checksum=expected)

        result = transcode("café".encode("utf-8"), "utf8", "latin1", options)

        assert result.checksum == expected
        assert result.checksum_verified is True

    def test_checksum_mismatch(self):
        """Test a wrong expected checksum fails the call."""
        options = DecodeOptions(checksum_algorithm="md5", expected_checksum="ff")

        with pytest.raises(InvalidEncoding, match="Checksum mismatch"):
            transcode(b"Hi", "utf8", "latin1", options)

    def test_metrics(self):
        """Test the decode stage and the transcode call are both recorded."""
        sink = CollectingSink()

        transcode(b"Hi", "utf8", "utf16be", metrics=sink)

        decode_event, transcode_event = sink.events
        assert decode_event.operation == "decode"
        assert transcode_event.operation == "transcode"
        assert transcode_event.format == "utf16be"
        assert (transcode_event.input_size, transcode_event.output_size) == (2, 4)
