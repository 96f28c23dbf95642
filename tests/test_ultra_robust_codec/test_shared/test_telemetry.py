"""Tests for metrics, checksums and structured logging."""

import logging

import pytest

from ultra_robust_codec.shared.checksum import compute_checksum, hashlib_checksum
from ultra_robust_codec.shared.errors import (
    BufferOverflow,
    InvalidEncoding,
    InvalidOptions,
)
from ultra_robust_codec.shared.formats import EncodingFormat
from ultra_robust_codec.shared.logging import CorrelationLogger, get_logger
from ultra_robust_codec.shared.telemetry import (
    CollectingSink,
    MetricEvent,
    OperationRecorder,
)

SHA256_ABC = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class BrokenSink:
    """Sink that always fails."""

    def emit(self, event):
        raise RuntimeError("sink down")


class TestOperationRecorder:
    """Test suite for OperationRecorder."""

    def test_success_event(self):
        """Test a completed operation emits one successful event."""
        sink = CollectingSink()

        with OperationRecorder("encode", EncodingFormat.BASE64, sink, "req-1") as recorder:
            recorder.input_size = 13
            recorder.output_size = 20

        assert len(sink.events) == 1
        event = sink.events[0]
        assert event.operation == "encode"
        assert event.format == "base64"
        assert (event.input_size, event.output_size) == (13, 20)
        assert event.success is True
        assert event.error_code is None
        assert event.correlation_id == "req-1"
        assert event.duration_ms >= 0

    def test_failure_event(self):
        """Test a failed operation records the error code and re-raises."""
        sink = CollectingSink()

        with pytest.raises(BufferOverflow):
            with OperationRecorder("decode", "base64", sink):
                raise BufferOverflow("too big", actual=2, maximum=1)

        event = sink.events[0]
        assert event.success is False
        assert event.error_code == "buffer_overflow"
        assert event.security_violation is True
        assert event.format == "base64"

    def test_non_security_failure(self):
        """Test validation failures are not flagged as security events."""
        sink = CollectingSink()

        with pytest.raises(InvalidEncoding):
            with OperationRecorder("decode", None, sink):
                raise InvalidEncoding("bad")

        assert sink.events[0].security_violation is False
        assert sink.events[0].error_code == "invalid_encoding"

    def test_without_sink(self):
        """Test the recorder works with no sink injected."""
        with OperationRecorder("detect") as recorder:
            recorder.input_size = 1

    def test_broken_sink_does_not_change_outcome(self, caplog):
        """Test that a failing sink is logged and otherwise ignored."""
        caplog.set_level(logging.WARNING, logger="ultra_robust_codec")

        with OperationRecorder("encode", "hex", BrokenSink()):
            pass

        assert "Metrics sink failed" in caplog.text

    def test_by_operation(self):
        """Test filtering collected events."""
        sink = CollectingSink()
        with OperationRecorder("encode", None, sink):
            pass
        with OperationRecorder("decode", None, sink):
            pass

        assert [e.operation for e in sink.by_operation("decode")] == ["decode"]


class TestMetricEvent:
    """Test suite for MetricEvent."""

    def test_to_dict(self):
        """Test dictionary conversion."""
        event = MetricEvent("detect", "utf8", 1.5, input_size=10)

        data = event.to_dict()

        assert data["operation"] == "detect"
        assert data["format"] == "utf8"
        assert data["input_size"] == 10
        assert data["success"] is True


class TestChecksum:
    """Test suite for the checksum hook."""

    def test_hashlib_digest(self):
        """Test the default hashlib provider."""
        assert hashlib_checksum(b"abc", "sha256") == SHA256_ABC
        assert hashlib_checksum(b"abc", "SHA-256") == SHA256_ABC

    def test_unknown_algorithm(self):
        """Test unknown algorithms are option errors."""
        with pytest.raises(InvalidOptions, match="Unsupported checksum algorithm"):
            hashlib_checksum(b"abc", "crc99")

    def test_variable_length_digest_rejected(self):
        """Test SHAKE digests are rejected."""
        with pytest.raises(InvalidOptions, match="Variable-length"):
            hashlib_checksum(b"abc", "shake_128")

    def test_no_algorithm_means_no_checksum(self):
        """Test nothing is computed unless requested."""
        assert compute_checksum(b"abc", None) is None

    def test_custom_provider(self):
        """Test an injected provider is used."""
        calls = []

        def provider(data, algorithm):
            calls.append((data, algorithm))
            return "custom"

        assert compute_checksum(b"abc", "crc32", provider) == "custom"
        assert calls == [(b"abc", "crc32")]


class TestCorrelationLogger:
    """Test suite for structured logging."""

    def test_records_carry_context(self, caplog):
        """Test component and correlation ID are attached to records."""
        caplog.set_level(logging.DEBUG, logger="ultra_robust_codec.test")
        logger = get_logger("ultra_robust_codec.test", "req-42", "decode")

        logger.info("hello", extra={"format": "base64"})

        record = caplog.records[-1]
        assert record.component == "decode"
        assert record.correlation_id == "req-42"
        assert record.format == "base64"

    def test_default_component(self):
        """Test the component defaults to the last name segment."""
        logger = CorrelationLogger("ultra_robust_codec.codec.engine")

        assert logger.component == "engine"

    def test_security_errors_logged_at_warning(self, caplog):
        """Test security violations are logged at WARNING."""
        caplog.set_level(logging.DEBUG, logger="ultra_robust_codec.test")
        logger = get_logger("ultra_robust_codec.test")

        logger.codec_error(BufferOverflow("big", actual=2, maximum=1))
        logger.codec_error(InvalidEncoding("bad"))

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.WARNING, logging.DEBUG]
