"""Character-encoding decoders with UTF validation state machines.

Well-formed runs are decoded by the built-in codecs. When a codec reports a
malformed sequence, the decoder classifies the maximal invalid subsequence
starting at the reported offset, then raises, substitutes U+FFFD or drops it
according to the error mode. Decoders are resumable: bytes of an incomplete
sequence at the end of a chunk are kept until the next ``feed``.
"""

import codecs
import re
from typing import Dict, Optional, Tuple, Union

from ..shared.config import ErrorMode
from ..shared.errors import (
    InvalidEncoding,
    InvalidUtf8,
    InvalidUtf16,
    Utf8ErrorKind,
    Utf16ErrorKind,
)
from ..shared.formats import EncodingFormat
from .limits import DECODE_WINDOW, DecodeOutcome, check_expansion, check_output_size

BytesLike = Union[bytes, bytearray, memoryview]

REPLACEMENT_CHARACTER = "\ufffd"

# UTF-8 lead byte classes
UTF8_CONTINUATION_MIN = 0x80
UTF8_CONTINUATION_MAX = 0xBF
UTF8_2BYTE_MIN = 0xC0
UTF8_3BYTE_MIN = 0xE0
UTF8_4BYTE_MIN = 0xF0
UTF8_INVALID_LEAD_MIN = 0xF8

# Smallest codepoint each sequence length may encode
UTF8_MIN_CODEPOINT = {2: 0x80, 3: 0x800, 4: 0x10000}
UTF8_LEAD_MASK = {2: 0x1F, 3: 0x0F, 4: 0x07}

SURROGATE_MIN = 0xD800
HIGH_SURROGATE_MAX = 0xDBFF
LOW_SURROGATE_MIN = 0xDC00
SURROGATE_MAX = 0xDFFF

UTF16_UNIT = 2


def _utf8_sequence_length(lead: int) -> int:
    if lead < UTF8_3BYTE_MIN:
        return 2
    if lead < UTF8_4BYTE_MIN:
        return 3
    return 4


def _is_continuation(byte: int) -> bool:
    return UTF8_CONTINUATION_MIN <= byte <= UTF8_CONTINUATION_MAX


def classify_utf8(
    data: BytesLike, start: int, final: bool
) -> Optional[Tuple[Utf8ErrorKind, int]]:
    """Classify the malformed UTF-8 sequence beginning at ``start``.

    Args:
        data: Buffer being decoded
        start: Offset of the first byte the built-in codec rejected
        final: Whether no more input follows ``data``

    Returns:
        (kind, length) of the maximal invalid subsequence, or None when the
        sequence is incomplete and more input may complete it
    """
    lead = data[start]
    if lead < UTF8_2BYTE_MIN:
        return Utf8ErrorKind.INVALID_CONTINUATION, 1
    if lead >= UTF8_INVALID_LEAD_MIN:
        return Utf8ErrorKind.OUT_OF_RANGE, 1

    length = _utf8_sequence_length(lead)
    end = start + 1
    limit = min(start + length, len(data))
    while end < limit and _is_continuation(data[end]):
        end += 1

    collected = end - start
    if collected < length:
        if end < len(data):
            return Utf8ErrorKind.INVALID_CONTINUATION, collected
        if not final:
            return None
        return Utf8ErrorKind.TRUNCATED_SEQUENCE, collected

    codepoint = lead & UTF8_LEAD_MASK[length]
    for index in range(start + 1, end):
        codepoint = (codepoint << 6) | (data[index] & 0x3F)

    if codepoint < UTF8_MIN_CODEPOINT[length]:
        return Utf8ErrorKind.OVERLONG_ENCODING, length
    if SURROGATE_MIN <= codepoint <= SURROGATE_MAX:
        return Utf8ErrorKind.SURROGATE_CODEPOINT, length
    return Utf8ErrorKind.OUT_OF_RANGE, length


def classify_utf16(
    data: BytesLike, start: int, final: bool, byteorder: str
) -> Optional[Tuple[Utf16ErrorKind, int]]:
    """Classify the malformed UTF-16 code unit beginning at ``start``.

    Returns:
        (kind, length) of the invalid input, or None when the input is
        incomplete and more input may complete it
    """
    remaining = len(data) - start
    if remaining < UTF16_UNIT:
        return None if not final else (Utf16ErrorKind.TRUNCATED_SEQUENCE, remaining)

    unit = int.from_bytes(data[start:start + UTF16_UNIT], byteorder)
    if LOW_SURROGATE_MIN <= unit <= SURROGATE_MAX:
        return Utf16ErrorKind.UNPAIRED_LOW_SURROGATE, UTF16_UNIT
    if SURROGATE_MIN <= unit <= HIGH_SURROGATE_MAX:
        if remaining < 2 * UTF16_UNIT:
            if not final:
                return None
            return Utf16ErrorKind.TRUNCATED_SEQUENCE, remaining
        return Utf16ErrorKind.UNPAIRED_HIGH_SURROGATE, UTF16_UNIT
    return Utf16ErrorKind.TRUNCATED_SEQUENCE, remaining


class _StreamDecoder:
    """Resumable decoder driving a built-in codec and a classifier.

    Subclasses provide the codec function, the classifier and the error
    type. ``corrections`` counts the invalid subsequences replaced or dropped
    so far and ``bytes_consumed`` the input fully processed.
    """

    error_class: type = InvalidUtf8
    format = EncodingFormat.UTF8

    def __init__(self, on_error: ErrorMode = ErrorMode.STRICT) -> None:
        self.on_error = on_error
        self.corrections = 0
        self.bytes_consumed = 0
        self._pending = b""

    @property
    def pending(self) -> bytes:
        """Bytes of an incomplete sequence waiting for more input."""
        return self._pending

    def _decode(self, data: memoryview, final: bool) -> Tuple[str, int]:
        raise NotImplementedError

    def _classify(self, data: BytesLike, start: int,
                  final: bool) -> Optional[Tuple[object, int]]:
        raise NotImplementedError

    def _describe(self, kind: object) -> str:
        raise NotImplementedError

    def feed(self, chunk: BytesLike, final: bool = False) -> str:
        """Decode the next chunk.

        Args:
            chunk: Next input bytes
            final: Whether this is the last chunk

        Returns:
            Text decoded from everything that could be completed

        Raises:
            InvalidUtf8 / InvalidUtf16: On malformed input in strict mode
        """
        data = self._pending + bytes(chunk) if self._pending else bytes(chunk)
        view = memoryview(data)
        base = self.bytes_consumed
        pieces = []
        position = 0

        while position < len(data):
            try:
                text, consumed = self._decode(view[position:], final)
            except UnicodeDecodeError as exc:
                bad = position + exc.start
                if bad > position:
                    # An incomplete unit right before the error stays unconsumed
                    text, consumed = self._decode(view[position:bad], False)
                    pieces.append(text)
                    bad = position + consumed
                classification = self._classify(data, bad, final)
                if classification is None:
                    position = bad
                    break
                kind, length = classification
                self._handle_error(kind, base + bad, pieces)
                position = bad + length
            else:
                pieces.append(text)
                position += consumed
                break

        self._pending = data[position:]
        self.bytes_consumed = base + position
        return "".join(pieces)

    def _handle_error(self, kind: object, offset: int, pieces: list) -> None:
        if self.on_error is ErrorMode.STRICT:
            raise self.error_class(
                f"{self._describe(kind)} at byte offset {offset}",
                subcode=kind,
                byte_offset=offset,
                operation="decode",
                input_format=self.format,
            )
        self.corrections += 1
        if self.on_error is ErrorMode.REPLACE:
            pieces.append(REPLACEMENT_CHARACTER)


class Utf8StreamDecoder(_StreamDecoder):
    """Resumable UTF-8 validator and decoder.

    Examples:
        >>> decoder = Utf8StreamDecoder(ErrorMode.REPLACE)
        >>> decoder.feed(b"caf\\xc3")
        'caf'
        >>> decoder.feed(b"\\xa9", final=True)
        'é'
    """

    error_class = InvalidUtf8
    format = EncodingFormat.UTF8

    def _decode(self, data: memoryview, final: bool) -> Tuple[str, int]:
        return codecs.utf_8_decode(data, "strict", final)

    def _classify(self, data: BytesLike, start: int,
                  final: bool) -> Optional[Tuple[object, int]]:
        return classify_utf8(data, start, final)

    def _describe(self, kind: object) -> str:
        return f"Invalid UTF-8 ({kind.value})"


class Utf16StreamDecoder(_StreamDecoder):
    """Resumable UTF-16 decoder validating surrogate pairing."""

    error_class = InvalidUtf16

    def __init__(self, fmt: EncodingFormat = EncodingFormat.UTF16LE,
                 on_error: ErrorMode = ErrorMode.STRICT) -> None:
        super().__init__(on_error)
        self.format = fmt
        self.byteorder = "little" if fmt is EncodingFormat.UTF16LE else "big"
        self._codec = (
            codecs.utf_16_le_decode if self.byteorder == "little"
            else codecs.utf_16_be_decode
        )

    def _decode(self, data: memoryview, final: bool) -> Tuple[str, int]:
        return self._codec(data, "strict", final)

    def _classify(self, data: BytesLike, start: int,
                  final: bool) -> Optional[Tuple[object, int]]:
        return classify_utf16(data, start, final, self.byteorder)

    def _describe(self, kind: object) -> str:
        return f"Invalid UTF-16 ({kind.value})"


# Bytes each single-byte encoding leaves undefined
_UNDEFINED_BYTES: Dict[EncodingFormat, bytes] = {
    EncodingFormat.ASCII: bytes(range(0x80, 0x100)),
    EncodingFormat.CP1252: b"\x81\x8d\x8f\x90\x9d",
    EncodingFormat.LATIN1: b"",
}

_UNDEFINED_PATTERNS = {
    fmt: re.compile(b"[" + re.escape(undefined) + b"]") if undefined else None
    for fmt, undefined in _UNDEFINED_BYTES.items()
}


class SingleByteDecoder:
    """Decoder for ascii, cp1252 and latin1.

    Single-byte encodings need no state across chunks; the class mirrors the
    stream decoders so callers can drive every character encoding the same
    way.
    """

    def __init__(self, fmt: EncodingFormat,
                 on_error: ErrorMode = ErrorMode.STRICT) -> None:
        self.format = fmt
        self.on_error = on_error
        self.corrections = 0
        self.bytes_consumed = 0
        self._undefined = _UNDEFINED_PATTERNS[fmt]

    def feed(self, chunk: BytesLike, final: bool = False) -> str:
        """Decode the next chunk.

        Raises:
            InvalidEncoding: On an undefined byte in strict mode
        """
        data = bytes(chunk)
        base = self.bytes_consumed
        self.bytes_consumed += len(data)
        if self._undefined is None:
            return data.decode(self.format.codec_name)

        pieces = []
        position = 0
        for match in self._undefined.finditer(data):
            offset = base + match.start()
            if self.on_error is ErrorMode.STRICT:
                raise InvalidEncoding(
                    f"Byte 0x{match.group()[0]:02X} at byte offset {offset} is "
                    f"undefined in {self.format.value}",
                    operation="decode",
                    input_format=self.format,
                    details={"byte_offset": offset, "byte": match.group()[0]},
                )
            pieces.append(data[position:match.start()].decode(self.format.codec_name))
            self.corrections += 1
            if self.on_error is ErrorMode.REPLACE:
                pieces.append(REPLACEMENT_CHARACTER)
            position = match.end()
        pieces.append(data[position:].decode(self.format.codec_name))
        return "".join(pieces)


StreamDecoder = Union[Utf8StreamDecoder, Utf16StreamDecoder, SingleByteDecoder]


def stream_decoder(fmt: EncodingFormat,
                   on_error: ErrorMode = ErrorMode.STRICT) -> StreamDecoder:
    """Create the resumable decoder for a character encoding."""
    if fmt is EncodingFormat.UTF8:
        return Utf8StreamDecoder(on_error)
    if fmt in (EncodingFormat.UTF16LE, EncodingFormat.UTF16BE):
        return Utf16StreamDecoder(fmt, on_error)
    return SingleByteDecoder(fmt, on_error)


def decode_bytes(
    data: BytesLike,
    fmt: EncodingFormat,
    on_error: ErrorMode = ErrorMode.STRICT,
    max_output_size: Optional[int] = None,
    max_expansion_ratio: Optional[float] = None,
    window: int = DECODE_WINDOW,
) -> DecodeOutcome:
    """Decode a character encoding to canonical UTF-8 bytes.

    Input is fed in windows; output size and expansion ratio are checked on
    the running totals after every window.

    Raises:
        InvalidUtf8 / InvalidUtf16 / InvalidEncoding: Malformed input in
            strict mode
        BufferOverflow: Output exceeds ``max_output_size``
        EncodingBomb: Output/input exceeds ``max_expansion_ratio``
    """
    decoder = stream_decoder(fmt, on_error)
    view = memoryview(data)
    output = bytearray()
    consumed = 0

    def account(text: str, size: int) -> None:
        output.extend(text.encode("utf-8"))
        if max_output_size is not None:
            check_output_size(len(output), max_output_size, "decode", fmt)
        if max_expansion_ratio is not None:
            check_expansion(len(output), size, max_expansion_ratio, fmt)

    for start in range(0, len(view), window):
        chunk = view[start:start + window]
        consumed += len(chunk)
        account(decoder.feed(chunk), consumed)
    account(decoder.feed(b"", final=True), consumed)

    warnings = []
    if decoder.corrections:
        warnings.append(f"replaced_invalid_sequences:{decoder.corrections}"
                        if on_error is ErrorMode.REPLACE
                        else f"dropped_invalid_sequences:{decoder.corrections}")
    return DecodeOutcome(bytes(output), decoder.corrections, warnings)


def encode_text(text: str, fmt: EncodingFormat,
                on_error: ErrorMode = ErrorMode.STRICT) -> Tuple[bytes, int]:
    """Encode text into a character encoding.

    Characters the target cannot represent raise InvalidEncoding in strict
    mode, become '?' in replace mode and are dropped in ignore mode.

    Returns:
        (encoded bytes, number of characters substituted or dropped)
    """
    codec = fmt.codec_name
    try:
        return text.encode(codec), 0
    except UnicodeEncodeError as exc:
        if on_error is ErrorMode.STRICT:
            raise InvalidEncoding(
                f"Character {exc.object[exc.start]!r} at position {exc.start} "
                f"cannot be encoded in {fmt.value}",
                operation="encode",
                output_format=fmt,
                details={
                    "position": exc.start,
                    "codepoint": ord(exc.object[exc.start]),
                },
            ) from None

    errors = "replace" if on_error is ErrorMode.REPLACE else "ignore"
    unencodable = sum(1 for char in text if not _encodable(char, codec))
    return text.encode(codec, errors), unencodable


def _encodable(char: str, codec: str) -> bool:
    try:
        char.encode(codec)
    except UnicodeEncodeError:
        return False
    return True
