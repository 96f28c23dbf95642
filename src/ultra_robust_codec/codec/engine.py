"""Public encode and decode operations.

``encode`` maps bytes onto a binary-to-text format. ``decode`` accepts every
format: binary-to-text input yields the original bytes, character-encoding
input yields canonical UTF-8 bytes. Both report one metric event per call and
never keep state between calls.
"""

from typing import Optional, Tuple, Union

from ..shared.checksum import ChecksumProvider, compute_checksum
from ..shared.config import DecodeOptions, EncodeOptions, ErrorMode, LetterCase
from ..shared.errors import (
    CodecError,
    InvalidEncoding,
    UnsupportedFormat,
    UtfValidationError,
    ValidationError,
)
from ..shared.formats import EncodingFormat
from ..shared.logging import get_logger
from ..shared.result import DecodeResult, EncodeResult
from ..shared.telemetry import MetricsSink, OperationRecorder
from . import binary, unicode
from .limits import DecodeOutcome

BinaryInput = Union[bytes, bytearray, memoryview]
DecodeInput = Union[str, bytes, bytearray, memoryview]
FormatName = Union[EncodingFormat, str]


def _require_bytes(data: object, fmt: EncodingFormat, operation: str) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise InvalidEncoding(
        f"{operation} with format '{fmt.value}' expects bytes, "
        f"got {type(data).__name__}",
        operation=operation,
        input_format=fmt,
        details={"expected": "bytes", "actual": type(data).__name__},
    )


def _input_size(data: DecodeInput, fmt: EncodingFormat) -> int:
    if isinstance(data, str):
        return len(data) if data.isascii() else len(data.encode("utf-8"))
    return len(_require_bytes(data, fmt, "decode"))


def encode(
    data: BinaryInput,
    format: FormatName,
    options: Optional[EncodeOptions] = None,
    *,
    checksum_provider: Optional[ChecksumProvider] = None,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> EncodeResult:
    """Encode bytes into a binary-to-text format.

    Args:
        data: Bytes to encode
        format: Binary-to-text format or its name
        options: Encode options, defaults when None
        checksum_provider: Digest function used when a checksum is requested
        metrics: Sink receiving one event for the call
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        EncodeResult with the encoded text

    Raises:
        UnsupportedFormat: If the format is a character encoding
        InvalidEncoding: If ``data`` is not bytes-like
        BufferOverflow: If the output would exceed ``max_encoded_size``

    Examples:
        >>> encode(b"Hello, World!", "base64").text
        'SGVsbG8sIFdvcmxkIQ=='
    """
    options = options or EncodeOptions()
    with OperationRecorder("encode", format, metrics, correlation_id) as recorder:
        fmt = EncodingFormat.parse(format, operation="encode")
        if not fmt.is_binary_to_text:
            raise UnsupportedFormat(
                f"Cannot encode to character encoding '{fmt.value}'; "
                "use transcode for text",
                operation="encode",
                output_format=fmt,
            )
        payload = _require_bytes(data, fmt, "encode")
        recorder.input_size = len(payload)

        text = binary.encode_bytes(payload, fmt, options)
        recorder.output_size = len(text)

        warnings = []
        if fmt is EncodingFormat.BASE64_RAW and options.padding:
            warnings.append("padding_not_applicable:base64_raw")
        if fmt is not EncodingFormat.HEX and options.case is LetterCase.UPPER:
            warnings.append(f"case_not_applicable:{fmt.value}")

        checksum = compute_checksum(
            payload, options.checksum_algorithm, checksum_provider
        )
        return EncodeResult(
            text=text,
            format=fmt,
            input_size=len(payload),
            output_size=len(text),
            warnings=warnings,
            checksum=checksum,
            checksum_algorithm=options.checksum_algorithm if checksum else None,
        )


def _decode_once(
    data: DecodeInput,
    fmt: EncodingFormat,
    options: DecodeOptions,
    mode: ErrorMode,
    input_size: int,
) -> DecodeOutcome:
    if fmt.is_binary_to_text:
        return binary.decode_text(
            binary.as_text(data), fmt, options, mode, input_size
        )
    payload = _require_bytes(data, fmt, "decode")
    return unicode.decode_bytes(
        payload,
        fmt,
        on_error=mode,
        max_output_size=options.max_decoded_size,
        max_expansion_ratio=options.max_expansion_ratio,
    )


def _decode_with_fallback(
    data: DecodeInput,
    fmt: EncodingFormat,
    options: DecodeOptions,
    input_size: int,
    correlation_id: Optional[str],
) -> Tuple[EncodingFormat, DecodeOutcome]:
    """Try the primary format, then each fallback, all in strict mode.

    Security violations propagate immediately. When every format fails the
    primary format's error is raised.
    """
    logger = get_logger(__name__, correlation_id, "decode")
    primary_error: Optional[CodecError] = None

    for candidate in (fmt,) + tuple(options.fallback_formats):
        try:
            outcome = _decode_once(
                data, candidate, options, ErrorMode.STRICT, input_size
            )
        except (ValidationError, UtfValidationError) as e:
            logger.debug(
                "Decode attempt failed",
                extra={"format": candidate.value, "error": e.code},
            )
            if primary_error is None:
                primary_error = e
            continue

        if candidate is not fmt:
            outcome.corrections = 1
            outcome.warnings.append(
                f"fallback_format_used:{fmt.value}->{candidate.value}"
            )
        return candidate, outcome

    raise primary_error


def decode(
    data: DecodeInput,
    format: FormatName,
    options: Optional[DecodeOptions] = None,
    *,
    checksum_provider: Optional[ChecksumProvider] = None,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> DecodeResult:
    """Decode input in the given format.

    Args:
        data: Encoded text (str or ASCII bytes) for binary-to-text formats,
            bytes for character encodings
        format: Format or its name
        options: Decode options, defaults when None
        checksum_provider: Digest function used when a checksum is requested
        metrics: Sink receiving one event for the call
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        DecodeResult holding decoded bytes, or UTF-8 bytes for character
        encodings

    Raises:
        InvalidEncoding: Malformed binary-to-text input, undefined legacy
            byte, or checksum mismatch
        InvalidUtf8 / InvalidUtf16: Malformed UTF input in strict mode
        BufferOverflow / EncodingBomb: Output limits exceeded
    """
    options = options or DecodeOptions()
    logger = get_logger(__name__, correlation_id, "decode")
    with OperationRecorder("decode", format, metrics, correlation_id) as recorder:
        fmt = EncodingFormat.parse(format)
        input_size = _input_size(data, fmt)
        recorder.input_size = input_size

        if options.on_error is ErrorMode.FALLBACK:
            used, outcome = _decode_with_fallback(
                data, fmt, options, input_size, correlation_id
            )
        else:
            used = fmt
            outcome = _decode_once(data, fmt, options, options.on_error, input_size)
        recorder.output_size = len(outcome.data)

        if outcome.corrections:
            logger.warning(
                "Recovered from malformed input",
                extra={
                    "format": used.value,
                    "corrections": outcome.corrections,
                    "warnings": list(outcome.warnings),
                },
            )

        checksum = compute_checksum(
            outcome.data, options.checksum_algorithm, checksum_provider
        )
        verified = None
        if options.expected_checksum is not None and checksum is not None:
            if checksum.lower() != options.expected_checksum.lower():
                raise InvalidEncoding(
                    f"Checksum mismatch for {options.checksum_algorithm}",
                    operation="decode",
                    input_format=used,
                    details={
                        "expected": options.expected_checksum,
                        "actual": checksum,
                    },
                )
            verified = True

        return DecodeResult(
            data=outcome.data,
            format=used,
            input_size=input_size,
            output_size=len(outcome.data),
            corrections_applied=outcome.corrections,
            warnings=outcome.warnings,
            checksum=checksum,
            checksum_algorithm=options.checksum_algorithm if checksum else None,
            checksum_verified=verified,
        )
