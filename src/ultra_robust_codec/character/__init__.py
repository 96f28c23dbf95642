"""Character layer for the ultra robust codec engine.

This module provides encoding detection, Unicode normalization with security
hardening and byte-order-mark handling.
"""

from .bom import add_bom, correct_bom, detect_bom, remove_bom, validate_bom
from .encoding import EncodingDetector, detect
from .normalization import Normalizer, normalize

__all__ = [
    # Modules
    "encoding",
    "normalization",
    "bom",
    # Detection
    "detect",
    "EncodingDetector",
    # Normalization
    "normalize",
    "Normalizer",
    # BOM operations
    "detect_bom",
    "remove_bom",
    "add_bom",
    "validate_bom",
    "correct_bom",
]
