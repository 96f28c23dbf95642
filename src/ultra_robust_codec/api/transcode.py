"""Composition facade over detection, BOM handling and decoding.

This is the only module that calls more than one component. Each function
is a straight pipeline; every stage raises its own typed errors.
"""

from dataclasses import replace
from typing import Optional, Union

from ..character.bom import remove_bom
from ..character.encoding import detect
from ..codec.engine import decode
from ..codec.limits import check_output_size
from ..codec.unicode import encode_text
from ..shared.checksum import ChecksumProvider, compute_checksum
from ..shared.config import DecodeOptions, DetectOptions, ErrorMode
from ..shared.errors import DetectionFailed, InvalidEncoding, UnsupportedFormat
from ..shared.formats import EncodingFormat
from ..shared.logging import get_logger
from ..shared.result import DecodeResult
from ..shared.telemetry import MetricsSink, OperationRecorder

BytesLike = Union[bytes, bytearray, memoryview]
FormatName = Union[EncodingFormat, str]


def _character_format(name: FormatName, operation: str) -> EncodingFormat:
    fmt = EncodingFormat.parse(name, operation=operation)
    if not fmt.is_character_encoding:
        raise UnsupportedFormat(
            f"'{fmt.value}' is not a character encoding",
            operation=operation,
            input_format=fmt,
        )
    return fmt


def decode_to_utf8(
    data: BytesLike,
    detect_options: Optional[DetectOptions] = None,
    decode_options: Optional[DecodeOptions] = None,
    *,
    checksum_provider: Optional[ChecksumProvider] = None,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> DecodeResult:
    """Detect the encoding of ``data``, strip its BOM and decode to UTF-8.

    Args:
        data: Bytes in an unknown character encoding
        detect_options: Detect options, defaults when None
        decode_options: Decode options; the first fallback format is used
            when detection gives up
        checksum_provider: Digest function used when a checksum is requested
        metrics: Sink receiving the events of every stage
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        DecodeResult with UTF-8 bytes and a ``detected_encoding`` warning

    Raises:
        DetectionFailed: If detection gives up and no fallback is configured
        UnsupportedFormat: If the data is UTF-32
    """
    decode_options = decode_options or DecodeOptions()
    detect_options = detect_options or DetectOptions()
    logger = get_logger(__name__, correlation_id, "decode_to_utf8")

    detection = detect(
        data, detect_options, metrics=metrics, correlation_id=correlation_id
    )
    encoding = detection.encoding
    if detection.is_unknown:
        if not decode_options.fallback_formats:
            raise DetectionFailed(
                detection.confidence, detect_options.min_confidence, encoding
            )
        encoding = decode_options.fallback_formats[0].value
        logger.info(
            "Detection gave up, using first fallback format",
            extra={"encoding": encoding},
        )

    # UTF-32 has no EncodingFormat member and is rejected here
    fmt = EncodingFormat.parse(encoding)

    payload = data
    if detection.bom_detected:
        payload = remove_bom(
            data,
            fmt,
            allow_multiple=decode_options.on_error is not ErrorMode.STRICT,
        )

    result = decode(
        payload,
        fmt,
        decode_options,
        checksum_provider=checksum_provider,
        metrics=metrics,
        correlation_id=correlation_id,
    )
    warnings = [f"detected_encoding:{encoding}"]
    warnings.extend(detection.warnings)
    warnings.extend(result.warnings)
    return replace(result, input_size=len(data), warnings=warnings)


def transcode(
    data: BytesLike,
    source: FormatName,
    target: FormatName,
    options: Optional[DecodeOptions] = None,
    *,
    checksum_provider: Optional[ChecksumProvider] = None,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> DecodeResult:
    """Convert bytes from one character encoding to another.

    Args:
        data: Bytes in ``source``
        source: Source character encoding
        target: Target character encoding
        options: Decode options; ``on_error`` also governs characters the
            target cannot represent ('?' in replace mode, dropped in ignore
            mode); checksums apply to the target bytes
        checksum_provider: Digest function used when a checksum is requested
        metrics: Sink receiving one event per stage
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        DecodeResult whose ``data`` holds the target bytes

    Raises:
        UnsupportedFormat: If either format is not a character encoding
        InvalidEncoding: Unencodable character in strict mode, or checksum
            mismatch
    """
    options = options or DecodeOptions()
    with OperationRecorder("transcode", target, metrics, correlation_id) as recorder:
        source_fmt = _character_format(source, "decode")
        target_fmt = _character_format(target, "encode")

        decoded = decode(
            data,
            source_fmt,
            replace(options, checksum_algorithm=None, expected_checksum=None),
            metrics=metrics,
            correlation_id=correlation_id,
        )
        recorder.input_size = decoded.input_size

        mode = options.on_error
        if mode is ErrorMode.FALLBACK:
            mode = ErrorMode.STRICT
        encoded, substitutions = encode_text(decoded.text, target_fmt, mode)
        check_output_size(len(encoded), options.max_decoded_size, "encode", target_fmt)
        recorder.output_size = len(encoded)

        warnings = list(decoded.warnings)
        if substitutions:
            warnings.append(f"unencodable_characters:{substitutions}")
            get_logger(__name__, correlation_id, "transcode").warning(
                "Characters not representable in target encoding",
                extra={"target": target_fmt.value, "count": substitutions},
            )

        checksum = compute_checksum(
            encoded, options.checksum_algorithm, checksum_provider
        )
        verified = None
        if options.expected_checksum is not None and checksum is not None:
            if checksum.lower() != options.expected_checksum.lower():
                raise InvalidEncoding(
                    f"Checksum mismatch for {options.checksum_algorithm}",
                    operation="encode",
                    output_format=target_fmt,
                    details={
                        "expected": options.expected_checksum,
                        "actual": checksum,
                    },
                )
            verified = True

        return DecodeResult(
            data=encoded,
            format=target_fmt,
            input_size=decoded.input_size,
            output_size=len(encoded),
            corrections_applied=decoded.corrections_applied + substitutions,
            warnings=warnings,
            checksum=checksum,
            checksum_algorithm=options.checksum_algorithm if checksum else None,
            checksum_verified=verified,
        )
