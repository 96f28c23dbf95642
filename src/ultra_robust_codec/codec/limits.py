"""Size and expansion limit checks shared by the codecs.

Binary-to-text decoders check the predicted output size before producing
anything. Character decoders check the running totals after each window.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..shared.errors import BufferOverflow, EncodingBomb
from ..shared.formats import EncodingFormat

# Window used for chunked encode and decode passes
DECODE_WINDOW = 64 * 1024


@dataclass
class DecodeOutcome:
    """Bytes produced by one decode pass plus the repairs it made."""

    data: bytes
    corrections: int = 0
    warnings: List[str] = field(default_factory=list)


def check_output_size(
    actual: int,
    maximum: int,
    operation: str,
    fmt: Optional[EncodingFormat] = None,
) -> None:
    """Raise BufferOverflow when ``actual`` exceeds ``maximum``."""
    if actual > maximum:
        raise BufferOverflow(
            f"Output of {actual} bytes exceeds the limit of {maximum} bytes",
            actual=actual,
            maximum=maximum,
            operation=operation,
            input_format=fmt,
        )


def check_expansion(
    output_size: int,
    input_size: int,
    max_ratio: float,
    fmt: Optional[EncodingFormat] = None,
) -> None:
    """Raise EncodingBomb when output/input exceeds ``max_ratio``."""
    if input_size <= 0 or output_size <= 0:
        return
    ratio = output_size / input_size
    if ratio > max_ratio:
        raise EncodingBomb(
            f"Expansion ratio {ratio:.2f} exceeds the limit of {max_ratio:.2f}",
            ratio=ratio,
            max_ratio=max_ratio,
            operation="decode",
            input_format=fmt,
        )
