"""Hashing utilities."""

from __future__ import annotations

import hashlib

HASH_ALGORITHMS: tuple[str, ...] = ("sha256", "blake2b")


def sha256_bytes(data: bytes) -> str:
    """Return hex digest for bytes input."""
    return hashlib.sha256(data).hexdigest()


def blake2b_bytes(data: bytes) -> str:
    """Return a 32-byte blake2b hex digest for bytes input."""
    return hashlib.blake2b(data, digest_size=32).hexdigest()


def content_hashes(data: bytes) -> dict[str, str]:
    """Digest ``data`` with every supported algorithm, keyed by algorithm name."""
    return {"sha256": sha256_bytes(data), "blake2b": blake2b_bytes(data)}
