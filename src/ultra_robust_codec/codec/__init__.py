"""Codec layer for the ultra robust codec engine.

This module provides binary-to-text encoding and decoding plus the character
decoders with their UTF validation state machines.
"""

from .engine import decode, encode
from .unicode import (
    SingleByteDecoder,
    Utf8StreamDecoder,
    Utf16StreamDecoder,
    stream_decoder,
)

__all__ = [
    # Modules
    "binary",
    "unicode",
    "engine",
    # Operations
    "encode",
    "decode",
    # Resumable decoders
    "Utf8StreamDecoder",
    "Utf16StreamDecoder",
    "SingleByteDecoder",
    "stream_decoder",
]
