"""Shared utilities for the schema compiler."""

from utils.hashing import hash_msgpack_canonical, hash_sha256_hex
from utils.registry_protocol import MutableRegistry

__all__ = [
    "MutableRegistry",
    "hash_msgpack_canonical",
    "hash_sha256_hex",
]
