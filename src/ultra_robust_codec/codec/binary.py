"""Base64, Base32 and hex codecs with size prediction and input repair.

Encoding predicts the exact output length before producing anything and then
encodes in fixed-size chunks. Decoding cleans the input, validates padding and
residual length, predicts the output size and then decodes in chunks whose
character counts are whole multiples of the format's quantum.
"""

import base64
import binascii
import re
from typing import Dict, List, Optional, Pattern, Tuple, Union

from ..shared.config import DecodeOptions, EncodeOptions, ErrorMode, LetterCase
from ..shared.errors import InvalidEncoding
from ..shared.formats import BASE32_FAMILY, BASE64_FAMILY, EncodingFormat
from .limits import DecodeOutcome, check_expansion, check_output_size

# Divisible by 2, 3 and 5 so only the final chunk can carry padding
ENCODE_CHUNK = 61440
# Divisible by 2, 4 and 8 for the same reason on the decode side
DECODE_CHUNK = 65536

PAD = "="
WHITESPACE = " \t\n\r\f\v"

BASE64_QUANTUM = 4
BASE32_QUANTUM = 8
HEX_QUANTUM = 2

# Character class bodies per format; Base32 and hex accept either case
_ALPHABETS: Dict[EncodingFormat, str] = {
    EncodingFormat.BASE64: "A-Za-z0-9+/",
    EncodingFormat.BASE64URL: "A-Za-z0-9\\-_",
    EncodingFormat.BASE64_RAW: "A-Za-z0-9+/",
    EncodingFormat.BASE32: "A-Za-z2-7",
    EncodingFormat.BASE32HEX: "0-9A-Va-v",
    EncodingFormat.HEX: "0-9A-Fa-f",
}

# Trailing characters in the last quantum -> bytes they encode
_BASE64_TAIL_BYTES = {0: 0, 2: 1, 3: 2}
_BASE32_TAIL_BYTES = {0: 0, 2: 1, 4: 2, 5: 3, 7: 4}

# Input bytes in the last group -> encoded characters without padding
_BASE64_TAIL_CHARS = {0: 0, 1: 2, 2: 3}
_BASE32_TAIL_CHARS = {0: 0, 1: 2, 2: 4, 3: 5, 4: 7}

_STRIP_WHITESPACE = str.maketrans("", "", WHITESPACE)
_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def _invalid_pattern(fmt: EncodingFormat, ignore_whitespace: bool) -> Pattern[str]:
    allowed = _ALPHABETS[fmt]
    if fmt is not EncodingFormat.HEX:
        allowed += PAD
    if ignore_whitespace:
        allowed += re.escape(WHITESPACE)
    return re.compile(f"[^{allowed}]")


_INVALID_CHARS: Dict[Tuple[EncodingFormat, bool], Pattern[str]] = {
    (fmt, ignore_ws): _invalid_pattern(fmt, ignore_ws)
    for fmt in _ALPHABETS
    for ignore_ws in (True, False)
}


def _quantum(fmt: EncodingFormat) -> int:
    if fmt in BASE64_FAMILY:
        return BASE64_QUANTUM
    if fmt in BASE32_FAMILY:
        return BASE32_QUANTUM
    return HEX_QUANTUM


def encoded_length(
    size: int,
    fmt: EncodingFormat,
    padding: bool = True,
    line_length: Optional[int] = None,
    line_ending: str = "\n",
) -> int:
    """Exact length of the encoded text for ``size`` input bytes.

    Args:
        size: Input length in bytes
        fmt: Binary-to-text format
        padding: Whether trailing padding is emitted
        line_length: Wrap width, None or 0 for a single line
        line_ending: Separator between wrapped lines

    Returns:
        Output length in characters, line breaks included
    """
    if fmt in BASE64_FAMILY:
        groups, tail = divmod(size, 3)
        length = groups * 4
        if tail:
            length += 4 if padding else _BASE64_TAIL_CHARS[tail]
    elif fmt in BASE32_FAMILY:
        groups, tail = divmod(size, 5)
        length = groups * 8
        if tail:
            length += 8 if padding else _BASE32_TAIL_CHARS[tail]
    else:
        length = size * 2

    if line_length and length > line_length:
        breaks = (length - 1) // line_length
        length += breaks * len(line_ending)
    return length


def decoded_length(chars: int, fmt: EncodingFormat) -> int:
    """Bytes produced by ``chars`` unpadded data characters."""
    if fmt in BASE64_FAMILY:
        groups, tail = divmod(chars, BASE64_QUANTUM)
        return groups * 3 + _BASE64_TAIL_BYTES.get(tail, 0)
    if fmt in BASE32_FAMILY:
        groups, tail = divmod(chars, BASE32_QUANTUM)
        return groups * 5 + _BASE32_TAIL_BYTES.get(tail, 0)
    return chars // 2


def _encode_chunk(chunk: memoryview, fmt: EncodingFormat, case: LetterCase) -> str:
    if fmt is EncodingFormat.HEX:
        text = chunk.hex()
        return text.upper() if case is LetterCase.UPPER else text
    if fmt is EncodingFormat.BASE64URL:
        encoded = base64.urlsafe_b64encode(chunk)
    elif fmt in BASE64_FAMILY:
        encoded = base64.b64encode(chunk)
    elif fmt is EncodingFormat.BASE32HEX:
        encoded = base64.b32hexencode(chunk)
    else:
        encoded = base64.b32encode(chunk)
    return encoded.decode("ascii")


def _wrap(text: str, line_length: int, line_ending: str) -> str:
    return line_ending.join(
        text[start:start + line_length]
        for start in range(0, len(text), line_length)
    )


def encode_bytes(data: bytes, fmt: EncodingFormat, options: EncodeOptions) -> str:
    """Encode bytes to text.

    Raises:
        BufferOverflow: If the predicted output exceeds ``max_encoded_size``
    """
    padding = options.padding and fmt is not EncodingFormat.BASE64_RAW
    predicted = encoded_length(
        len(data), fmt, padding, options.line_length, options.line_ending
    )
    check_output_size(predicted, options.max_encoded_size, "encode", fmt)

    view = memoryview(data)
    text = "".join(
        _encode_chunk(view[start:start + ENCODE_CHUNK], fmt, options.case)
        for start in range(0, len(view), ENCODE_CHUNK)
    )
    if not padding and fmt is not EncodingFormat.HEX:
        text = text.rstrip(PAD)
    if options.wraps_lines:
        text = _wrap(text, options.line_length, options.line_ending)
    return text


def as_text(data: Union[str, bytes, bytearray, memoryview]) -> str:
    """Binary-to-text input as str; every byte maps to one character."""
    if isinstance(data, str):
        return data
    return bytes(data).decode("latin-1")


def _invalid_character(
    fmt: EncodingFormat, message: str, position: int, character: str
) -> InvalidEncoding:
    return InvalidEncoding(
        message,
        operation="decode",
        input_format=fmt,
        details={"position": position, "character": character},
    )


class _Repairs:
    """Corrections and warnings collected during one decode."""

    def __init__(self) -> None:
        self.count = 0
        self.warnings: List[str] = []

    def add(self, warning: str, count: int = 1) -> None:
        self.count += count
        self.warnings.append(warning)


def _split_padding(
    text: str,
    fmt: EncodingFormat,
    options: DecodeOptions,
    strict: bool,
    repairs: _Repairs,
) -> str:
    """Return the data characters with trailing padding removed."""
    first = text.find(PAD)
    if first < 0:
        return text

    body, padding = text[:first], text[first:]
    trailing = padding.lstrip(PAD)
    if trailing:
        position = len(text) - len(trailing)
        if strict:
            raise _invalid_character(
                fmt, f"Data after padding at position {position}",
                position, text[position],
            )
        repairs.add("removed_interior_padding")
        return text.replace(PAD, "")

    if not options.validate_padding:
        repairs.warnings.append("padding_not_validated")
        return body

    if fmt is EncodingFormat.BASE64_RAW:
        if strict:
            raise _invalid_character(
                fmt, "base64_raw input must not be padded", first, PAD
            )
        repairs.add("removed_padding")
        return body

    quantum = _quantum(fmt)
    expected = (-len(body)) % quantum
    if expected != len(padding):
        if strict:
            raise _invalid_character(
                fmt,
                f"Incorrect padding: expected {expected} '=' characters, "
                f"found {len(padding)}",
                first, PAD,
            )
        repairs.add("repaired_padding")
    return body


def _has_partial_byte(chars: int, fmt: EncodingFormat) -> bool:
    if fmt in BASE64_FAMILY:
        return chars % BASE64_QUANTUM == 1
    if fmt in BASE32_FAMILY:
        return chars % BASE32_QUANTUM in (1, 3, 6)
    return chars % HEX_QUANTUM == 1


def _decode_chunk(chunk: str, fmt: EncodingFormat) -> bytes:
    if fmt is EncodingFormat.HEX:
        return bytes.fromhex(chunk)
    padding = PAD * ((-len(chunk)) % _quantum(fmt))
    if fmt in BASE64_FAMILY:
        if fmt is EncodingFormat.BASE64URL:
            chunk = chunk.translate(_URLSAFE_TO_STANDARD)
        return base64.b64decode(chunk + padding, validate=True)
    if fmt is EncodingFormat.BASE32HEX:
        return base64.b32hexdecode(chunk + padding, casefold=True)
    return base64.b32decode(chunk + padding, casefold=True)


def decode_text(
    text: str,
    fmt: EncodingFormat,
    options: DecodeOptions,
    mode: ErrorMode,
    input_size: int,
) -> DecodeOutcome:
    """Decode binary-to-text input.

    Args:
        text: Encoded input
        fmt: Binary-to-text format
        options: Decode options (limits, whitespace and padding handling)
        mode: Effective error mode; replace and ignore both skip bad input
        input_size: Input length in bytes, for the expansion check

    Returns:
        DecodeOutcome with the decoded bytes and any repairs

    Raises:
        InvalidEncoding: On malformed input in strict mode
        BufferOverflow: If the predicted output exceeds ``max_decoded_size``
        EncodingBomb: If the predicted expansion exceeds the ratio limit
    """
    strict = mode is ErrorMode.STRICT
    repairs = _Repairs()
    ignore_whitespace = options.whitespace_ignored(fmt)

    # Positions reported below refer to the input after whitespace removal
    if ignore_whitespace:
        text = text.translate(_STRIP_WHITESPACE)

    invalid = _INVALID_CHARS[(fmt, ignore_whitespace)]
    if strict:
        match = invalid.search(text)
        if match:
            raise _invalid_character(
                fmt,
                f"Invalid {fmt.value} character {match.group()!r} at "
                f"position {match.start()}",
                match.start(), match.group(),
            )
    else:
        text, skipped = invalid.subn("", text)
        if skipped:
            repairs.add(f"skipped_invalid_characters:{skipped}", skipped)

    body = _split_padding(text, fmt, options, strict, repairs)

    if _has_partial_byte(len(body), fmt):
        if strict:
            raise _invalid_character(
                fmt,
                f"Truncated {fmt.value} input: {len(body)} data characters "
                "cannot encode whole bytes",
                len(body) - 1, body[-1],
            )
        body = body[:-1]
        repairs.add("dropped_trailing_character")

    predicted = decoded_length(len(body), fmt)
    check_output_size(predicted, options.max_decoded_size, "decode", fmt)
    check_expansion(predicted, input_size, options.max_expansion_ratio, fmt)

    output = bytearray()
    for start in range(0, len(body), DECODE_CHUNK):
        try:
            output += _decode_chunk(body[start:start + DECODE_CHUNK], fmt)
        except (binascii.Error, ValueError) as e:
            raise InvalidEncoding(
                f"Malformed {fmt.value} input: {e}",
                operation="decode",
                input_format=fmt,
                details={"position": start},
            ) from e
        check_output_size(len(output), options.max_decoded_size, "decode", fmt)

    return DecodeOutcome(bytes(output), repairs.count, repairs.warnings)
