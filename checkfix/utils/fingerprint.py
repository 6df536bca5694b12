"""
Fingerprint Utility
===================
Deterministic content hashing of the current target state.

Rules:
    - SHA-256 truncated to 16 hex chars for compactness.
    - Deterministic: same content in the same order always produces the same digest.
    - Content-complete: every byte the target yields feeds the hash.
    - Used for change detection and cycle detection only, never for security.
"""
import hashlib
from typing import Iterable, Union

_DIGEST_LENGTH = 16


def compute_digest(data: Union[str, bytes]) -> str:
    """
    Hash a single string or byte string.

    Parameters
    ----------
    data : str | bytes
        Content to hash. Strings are UTF-8 encoded.

    Returns
    -------
    str
        16-character hex digest.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()[:_DIGEST_LENGTH]


def digest_chunks(chunks: Iterable[bytes]) -> str:
    """Hash an ordered stream of byte chunks as if they were concatenated."""
    h = hashlib.sha256()
    for chunk in chunks:
        h.update(chunk)
    return h.hexdigest()[:_DIGEST_LENGTH]


def fingerprint(target) -> str:
    """
    Fingerprint the current content of a target.

    Parameters
    ----------
    target : Target
        Anything exposing ``iter_content()`` yielding bytes in a fixed order.

    Returns
    -------
    str
        16-character hex digest of the target content read at call time.
    """
    return digest_chunks(target.iter_content())
