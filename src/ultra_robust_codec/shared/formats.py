"""Encoding format vocabulary shared by every engine component.

This module defines the closed set of supported formats, the byte-order-mark
signature table and the alias table used to resolve user supplied encoding
names to their canonical form.
"""

from enum import Enum
from typing import Dict, Optional, Tuple, Union

from .errors import UnsupportedFormat


class EncodingFormat(Enum):
    """Closed enumeration of binary-to-text and character encoding formats."""

    # Binary-to-text
    BASE64 = "base64"
    BASE64URL = "base64url"
    BASE64_RAW = "base64_raw"
    BASE32 = "base32"
    BASE32HEX = "base32hex"
    HEX = "hex"

    # Character encodings
    UTF8 = "utf8"
    UTF16LE = "utf16le"
    UTF16BE = "utf16be"
    LATIN1 = "latin1"
    CP1252 = "cp1252"
    ASCII = "ascii"

    @property
    def is_binary_to_text(self) -> bool:
        """Whether the format maps arbitrary bytes onto ASCII text."""
        return self in BINARY_TO_TEXT_FORMATS

    @property
    def is_character_encoding(self) -> bool:
        """Whether the format is a character encoding."""
        return not self.is_binary_to_text

    @property
    def codec_name(self) -> str:
        """Python codec name for character encodings.

        Raises:
            UnsupportedFormat: If the format is a binary-to-text format
        """
        try:
            return _CODEC_NAMES[self]
        except KeyError:
            raise UnsupportedFormat(
                f"Format '{self.value}' is not a character encoding",
                operation="decode",
                input_format=self,
            ) from None

    @classmethod
    def parse(
        cls, name: Union[str, "EncodingFormat"], operation: str = "decode"
    ) -> "EncodingFormat":
        """Resolve a format name or alias to its canonical member.

        Args:
            name: Format value, member name or common alias
            operation: Operation reported when the name is rejected

        Returns:
            Matching EncodingFormat

        Raises:
            UnsupportedFormat: If the name is not recognised
        """
        if isinstance(name, cls):
            return name

        key = str(name).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member

        alias = FORMAT_ALIASES.get(key.replace("_", "-"))
        if alias is not None:
            return alias

        raise UnsupportedFormat(
            f"Unsupported encoding format: {name}",
            operation=operation,
            details={"format": str(name)},
        )


BINARY_TO_TEXT_FORMATS = frozenset({
    EncodingFormat.BASE64,
    EncodingFormat.BASE64URL,
    EncodingFormat.BASE64_RAW,
    EncodingFormat.BASE32,
    EncodingFormat.BASE32HEX,
    EncodingFormat.HEX,
})

BASE64_FAMILY = frozenset({
    EncodingFormat.BASE64,
    EncodingFormat.BASE64URL,
    EncodingFormat.BASE64_RAW,
})

BASE32_FAMILY = frozenset({
    EncodingFormat.BASE32,
    EncodingFormat.BASE32HEX,
})

_CODEC_NAMES: Dict[EncodingFormat, str] = {
    EncodingFormat.UTF8: "utf-8",
    EncodingFormat.UTF16LE: "utf-16-le",
    EncodingFormat.UTF16BE: "utf-16-be",
    EncodingFormat.LATIN1: "latin-1",
    EncodingFormat.CP1252: "cp1252",
    EncodingFormat.ASCII: "ascii",
}

# Common aliases, keyed with dashes
FORMAT_ALIASES: Dict[str, EncodingFormat] = {
    "utf-8": EncodingFormat.UTF8,
    "utf-16le": EncodingFormat.UTF16LE,
    "utf-16-le": EncodingFormat.UTF16LE,
    "utf-16be": EncodingFormat.UTF16BE,
    "utf-16-be": EncodingFormat.UTF16BE,
    "iso-8859-1": EncodingFormat.LATIN1,
    "iso8859-1": EncodingFormat.LATIN1,
    "latin-1": EncodingFormat.LATIN1,
    "l1": EncodingFormat.LATIN1,
    "windows-1252": EncodingFormat.CP1252,
    "win-1252": EncodingFormat.CP1252,
    "us-ascii": EncodingFormat.ASCII,
    "base-64": EncodingFormat.BASE64,
    "base64-url": EncodingFormat.BASE64URL,
    "base64-raw": EncodingFormat.BASE64_RAW,
    "base-32": EncodingFormat.BASE32,
    "base32-hex": EncodingFormat.BASE32HEX,
    "base16": EncodingFormat.HEX,
}


class BomType(Enum):
    """Byte-order-mark signatures recognised by the BOM handler."""

    UTF8 = "utf8"
    UTF16LE = "utf16le"
    UTF16BE = "utf16be"
    UTF32LE = "utf32le"
    UTF32BE = "utf32be"

    @property
    def signature(self) -> bytes:
        """Canonical signature bytes."""
        return _BOM_SIGNATURES[self]

    @property
    def encoding_implied(self) -> Optional[EncodingFormat]:
        """Encoding format the signature implies, None for UTF-32."""
        return _BOM_IMPLIED.get(self)

    @classmethod
    def for_format(cls, encoding: Union[EncodingFormat, "BomType"]) -> "BomType":
        """Return the BOM type used by an encoding format.

        Raises:
            UnsupportedFormat: If the format has no byte-order mark
        """
        if isinstance(encoding, cls):
            return encoding
        for bom_type, implied in _BOM_IMPLIED.items():
            if implied is encoding:
                return bom_type
        raise UnsupportedFormat(
            f"Encoding '{encoding.value}' has no byte-order mark",
            operation="bom",
            output_format=encoding,
        )


_BOM_SIGNATURES: Dict[BomType, bytes] = {
    BomType.UTF8: b"\xef\xbb\xbf",
    BomType.UTF16LE: b"\xff\xfe",
    BomType.UTF16BE: b"\xfe\xff",
    BomType.UTF32LE: b"\xff\xfe\x00\x00",
    BomType.UTF32BE: b"\x00\x00\xfe\xff",
}

_BOM_IMPLIED: Dict[BomType, EncodingFormat] = {
    BomType.UTF8: EncodingFormat.UTF8,
    BomType.UTF16LE: EncodingFormat.UTF16LE,
    BomType.UTF16BE: EncodingFormat.UTF16BE,
}

# Ordered longest-first so UTF-32 is checked before UTF-16
# (the UTF-32-LE signature starts with the UTF-16-LE signature)
BOM_SIGNATURES: Tuple[Tuple[bytes, BomType], ...] = (
    (b"\x00\x00\xfe\xff", BomType.UTF32BE),
    (b"\xff\xfe\x00\x00", BomType.UTF32LE),
    (b"\xef\xbb\xbf", BomType.UTF8),
    (b"\xfe\xff", BomType.UTF16BE),
    (b"\xff\xfe", BomType.UTF16LE),
)

_UTF32_TYPES = frozenset({BomType.UTF32LE, BomType.UTF32BE})


def match_bom_signature(data: bytes) -> Optional[BomType]:
    """Return the longest unambiguous BOM signature at the start of data.

    A UTF-32 signature is only accepted when the payload after it is a whole
    number of 4-byte code units; otherwise the shorter UTF-16 signature wins.
    """
    for signature, bom_type in BOM_SIGNATURES:
        if not data.startswith(signature):
            continue
        if bom_type in _UTF32_TYPES and (len(data) - len(signature)) % 4 != 0:
            continue
        return bom_type
    return None
