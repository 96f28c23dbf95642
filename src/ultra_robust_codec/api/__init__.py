"""Composition facade combining detection, BOM handling and decoding."""

from .transcode import decode_to_utf8, transcode

__all__ = [
    "decode_to_utf8",
    "transcode",
]
