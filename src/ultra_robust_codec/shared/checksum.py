"""Checksum provider hook.

The engine only digests bytes when a caller asks for a checksum, and it does
so through an injected ``ChecksumProvider``. ``hashlib_checksum`` is the
provider used when the caller does not inject one.
"""

import hashlib
from typing import Callable, Optional

from .errors import InvalidOptions

ChecksumProvider = Callable[[bytes, str], str]


def hashlib_checksum(data: bytes, algorithm: str) -> str:
    """Digest ``data`` with a hashlib algorithm.

    Args:
        data: Bytes to digest
        algorithm: Any name in ``hashlib.algorithms_available``

    Returns:
        Lower-case hex digest

    Raises:
        InvalidOptions: If the algorithm is not available
    """
    # sha-256 -> sha256, sha3-256 -> sha3_256
    name = algorithm.lower()
    for candidate in (name.replace("-", ""), name.replace("-", "_")):
        if candidate in hashlib.algorithms_available:
            name = candidate
            break
    if name.startswith("shake_"):
        raise InvalidOptions(
            f"Variable-length digest {algorithm} is not supported",
            field_name="checksum_algorithm",
        )
    try:
        digest = hashlib.new(name)
    except ValueError:
        raise InvalidOptions(
            f"Unsupported checksum algorithm: {algorithm}",
            field_name="checksum_algorithm",
        ) from None
    digest.update(data)
    return digest.hexdigest()


def compute_checksum(
    data: bytes,
    algorithm: Optional[str],
    provider: Optional[ChecksumProvider] = None,
) -> Optional[str]:
    """Run the provider when a checksum was requested, else return None."""
    if not algorithm:
        return None
    return (provider or hashlib_checksum)(data, algorithm)
