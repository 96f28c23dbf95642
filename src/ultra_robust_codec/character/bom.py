"""Byte-order-mark detection and correction.

Four primitives (detect, remove, add, validate) work on signature matching
alone. ``correct_bom`` applies a BomOptions policy by composing them.
"""

from typing import Optional, Union

from ..shared.config import BomOptions, MismatchPolicy
from ..shared.errors import BomMismatch, InvalidEncoding, MultipleBoms
from ..shared.formats import BomType, EncodingFormat, match_bom_signature
from ..shared.logging import get_logger
from ..shared.result import BomAction, BomCorrection, BomResult
from ..shared.telemetry import MetricsSink, OperationRecorder

BytesLike = Union[bytes, bytearray, memoryview]
ExpectedEncoding = Union[EncodingFormat, BomType, str]


def _as_bytes(data: BytesLike) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise InvalidEncoding(
        f"BOM handling expects bytes, got {type(data).__name__}",
        operation="bom",
        details={"expected": "bytes", "actual": type(data).__name__},
    )


def _expected_bom(expected: ExpectedEncoding) -> Optional[BomType]:
    """BOM type an expected encoding uses, None when it has none."""
    if isinstance(expected, BomType):
        return expected
    if isinstance(expected, str):
        for bom_type in BomType:
            if expected.lower() in (bom_type.value, bom_type.name.lower()):
                return bom_type
    fmt = EncodingFormat.parse(expected, operation="bom")
    for bom_type in BomType:
        if bom_type.encoding_implied is fmt:
            return bom_type
    return None


def _expected_name(expected: ExpectedEncoding) -> str:
    return getattr(expected, "value", str(expected))


def _count_boms(data: bytes) -> int:
    count = 0
    while True:
        bom_type = match_bom_signature(data)
        if bom_type is None:
            return count
        count += 1
        data = data[len(bom_type.signature):]


def detect_bom(data: BytesLike) -> BomResult:
    """Detect the byte-order mark at the start of ``data``.

    Examples:
        >>> detect_bom(b"\\xef\\xbb\\xbfHi").byte_length
        3
    """
    bom_type = match_bom_signature(_as_bytes(data))
    if bom_type is None:
        return BomResult()
    return BomResult(
        bom_type=bom_type,
        byte_length=len(bom_type.signature),
        encoding_implied=bom_type.encoding_implied,
    )


def validate_bom(data: BytesLike, expected: ExpectedEncoding) -> BomResult:
    """Check the BOM of ``data`` against an expected encoding.

    Data without a BOM is valid for every encoding.

    Returns:
        The detected BomResult

    Raises:
        BomMismatch: If the BOM belongs to another encoding
        MultipleBoms: If another BOM immediately follows the first
    """
    payload = _as_bytes(data)
    result = detect_bom(payload)
    if not result.has_bom:
        return result

    expected_type = _expected_bom(expected)
    if result.bom_type is not expected_type:
        raise BomMismatch(_expected_name(expected), result.bom_type)

    count = _count_boms(payload)
    if count > 1:
        raise MultipleBoms(count)
    return result


def remove_bom(
    data: BytesLike,
    expected: Optional[ExpectedEncoding] = None,
    *,
    allow_multiple: bool = False,
) -> bytes:
    """Strip the byte-order mark from ``data``.

    Args:
        data: Bytes possibly starting with a BOM
        expected: Encoding the BOM must belong to, any when None
        allow_multiple: Strip every repeated BOM instead of failing

    Returns:
        Data without its BOM; unchanged when there is none

    Raises:
        BomMismatch: If the BOM conflicts with ``expected``
        MultipleBoms: If BOMs repeat and ``allow_multiple`` is false
    """
    payload = _as_bytes(data)
    bom_type = match_bom_signature(payload)
    if bom_type is None:
        return payload

    if expected is not None and bom_type is not _expected_bom(expected):
        raise BomMismatch(_expected_name(expected), bom_type)

    count = _count_boms(payload)
    if count > 1 and not allow_multiple:
        raise MultipleBoms(count)

    while bom_type is not None:
        payload = payload[len(bom_type.signature):]
        bom_type = match_bom_signature(payload)
    return payload


def add_bom(data: BytesLike, encoding: ExpectedEncoding) -> bytes:
    """Prepend the canonical BOM for ``encoding``.

    Idempotent when the same BOM is already present.

    Raises:
        UnsupportedFormat: If the encoding has no byte-order mark
        BomMismatch: If a different BOM is already present
    """
    payload = _as_bytes(data)
    bom_type = _expected_bom(encoding)
    if bom_type is None:
        # Raises UnsupportedFormat for encodings without a BOM
        bom_type = BomType.for_format(EncodingFormat.parse(encoding, operation="bom"))

    existing = match_bom_signature(payload)
    if existing is bom_type:
        return payload
    if existing is not None:
        raise BomMismatch(bom_type, existing)
    return bom_type.signature + payload


def correct_bom(
    data: BytesLike,
    expected: Optional[ExpectedEncoding] = None,
    options: Optional[BomOptions] = None,
    *,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> BomCorrection:
    """Bring the BOM of ``data`` in line with a policy.

    Args:
        data: Bytes possibly starting with a BOM
        expected: Encoding the payload is in, None to accept any BOM
        options: BOM policy, defaults when None
        metrics: Sink receiving one event for the call
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        BomCorrection with the corrected bytes and the action taken

    Raises:
        BomMismatch: On a conflicting BOM with the error policy
        MultipleBoms: On repeated BOMs unless ``allow_multiple``
    """
    options = options or BomOptions()
    with OperationRecorder("bom", expected, metrics, correlation_id) as recorder:
        payload = _as_bytes(data)
        recorder.input_size = len(payload)
        correction = _apply_policy(payload, expected, options)
        recorder.output_size = len(correction.data)

    get_logger(__name__, correlation_id, "bom").debug(
        "BOM corrected",
        extra={
            "action": correction.action.value,
            "original_bom": correction.original_bom.to_dict(),
        },
    )
    return correction


def _apply_policy(
    payload: bytes,
    expected: Optional[ExpectedEncoding],
    options: BomOptions,
) -> BomCorrection:
    original = detect_bom(payload)
    expected_type = _expected_bom(expected) if expected is not None else None
    warnings = []
    repeated = False

    try:
        if expected is not None:
            validate_bom(payload, expected)
        elif original.has_bom:
            validate_bom(payload, original.bom_type)
    except MultipleBoms as e:
        if not options.allow_multiple:
            raise
        repeated = True
        warnings.append(f"removed_repeated_boms:{e.count}")
    except BomMismatch as e:
        if options.on_mismatch is MismatchPolicy.ERROR:
            raise
        warnings.append(
            f"bom_mismatch:expected={_expected_name(e.expected)},"
            f"actual={_expected_name(e.actual)}"
        )
        if options.on_mismatch is MismatchPolicy.IGNORE:
            return BomCorrection(payload, BomAction.UNCHANGED, original, warnings)

        stripped = remove_bom(payload, allow_multiple=options.allow_multiple)
        if options.prefer_no_bom or expected_type is None:
            return BomCorrection(stripped, BomAction.STRIPPED, original, warnings)
        return BomCorrection(
            add_bom(stripped, expected_type), BomAction.REPLACED, original, warnings
        )

    if original.has_bom:
        if options.prefer_no_bom:
            stripped = remove_bom(payload, allow_multiple=options.allow_multiple)
            return BomCorrection(stripped, BomAction.STRIPPED, original, warnings)
        if repeated:
            single = add_bom(remove_bom(payload, allow_multiple=True),
                             original.bom_type)
            return BomCorrection(single, BomAction.STRIPPED, original, warnings)
        return BomCorrection(payload, BomAction.UNCHANGED, original, warnings)

    if options.add_if_missing and expected_type is not None:
        return BomCorrection(
            add_bom(payload, expected_type), BomAction.INSERTED, original, warnings
        )
    if options.add_if_missing and expected is not None:
        warnings.append(f"no_bom_for_encoding:{_expected_name(expected)}")
    return BomCorrection(payload, BomAction.UNCHANGED, original, warnings)
