"""Content hashes over deterministic msgspec encodings."""

from __future__ import annotations

import hashlib

from serde_msgspec import MSGPACK_ENCODER


def hash_sha256_hex(payload: bytes, *, length: int | None = None) -> str:
    """Return SHA-256 hex digest, optionally truncated.

    Parameters
    ----------
    payload
        Raw bytes to hash.
    length
        Optional length of hex digest to return.

    Returns
    -------
    str
        Hex digest string (possibly truncated).
    """
    digest = hashlib.sha256(payload).hexdigest()
    return digest if length is None else digest[:length]


def hash_msgpack_canonical(payload: object) -> str:
    """Return SHA-256 hexdigest using MSGPACK_ENCODER (deterministic order).

    Parameters
    ----------
    payload
        Payload to encode.

    Returns
    -------
    str
        SHA-256 hexdigest.
    """
    return hash_sha256_hex(MSGPACK_ENCODER.encode(payload))


__all__ = ["hash_msgpack_canonical", "hash_sha256_hex"]
