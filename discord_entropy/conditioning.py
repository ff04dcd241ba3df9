"""Seed derivation and hash-chain expansion.

A content blob is reduced to a 32-byte SHA-256 seed, which is then stretched
into an arbitrarily long byte stream::

    d0    = seed
    b_i   = SHA-256(hex(d_i))      # lowercase hex text, not raw bytes
    d_i+1 = b_i

The output is ``b_0 || b_1 || ...`` truncated to the requested length.
Hashing the hex text rather than the raw digest is part of the format: the
same seed must reproduce the same stream on every platform.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterator

SEED_SIZE = 32
BLOCK_SIZE = 32


def derive_seed(blob: bytes) -> bytes:
    """SHA-256 of *blob*. Defined for the empty blob."""
    return hashlib.sha256(blob).digest()


def _check_seed(seed: bytes) -> None:
    if not isinstance(seed, (bytes, bytearray)) or len(seed) != SEED_SIZE:
        raise ValueError(f"seed must be {SEED_SIZE} bytes")


def iter_blocks(seed: bytes) -> Iterator[bytes]:
    """Yield 32-byte chain blocks forever."""
    _check_seed(seed)
    state = bytes(seed)
    while True:
        state = hashlib.sha256(state.hex().encode("ascii")).digest()
        yield state


def iter_expand(
    seed: bytes,
    length: int | None = None,
    chunk_size: int = 4096,
) -> Iterator[bytes]:
    """Lazily expand *seed* into chunks of at most *chunk_size* bytes.

    Parameters
    ----------
    seed:
        32-byte seed, usually from :func:`derive_seed`.
    length:
        Total bytes to produce. ``None`` streams forever; the consumer stops
        by simply not asking for more.
    chunk_size:
        Upper bound on the size of each yielded chunk. Chunking never
        changes the concatenated output.
    """
    _check_seed(seed)
    if length is not None and length < 0:
        raise ValueError("length must be non-negative")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    remaining = length
    buf = bytearray()
    for block in iter_blocks(seed):
        if remaining is not None:
            if remaining <= 0:
                break
            block = block[:remaining]
            remaining -= len(block)
        buf.extend(block)
        while len(buf) >= chunk_size:
            yield bytes(buf[:chunk_size])
            del buf[:chunk_size]
    if buf:
        yield bytes(buf)


def expand(seed: bytes, length: int) -> bytes:
    """Return exactly *length* bytes of the chain for *seed*."""
    if length is None:
        raise ValueError("expand() needs a finite length; use iter_expand()")
    return b"".join(iter_expand(seed, length))
