"""
BLAKE2b hash function (RFC 7693).

A pure Python implementation used to derive account addresses from public
keys. Only the unkeyed mode is supported; there is no salt or
personalization. Digests are bit-for-bit identical to the reference
implementation for every output length in 1..64.
"""

import struct
from typing import List, Sequence, Union

from .types import (
    BLAKE2B_BLOCK_SIZE,
    BLAKE2B_MAX_OUTPUT_SIZE,
    InvalidOutputLengthError,
)


BytesLike = Union[bytes, bytearray, memoryview]

MASK64 = (1 << 64) - 1
MASK128 = (1 << 128) - 1

# Initialization vector (same as SHA-512)
IV = (
    0x6A09E667F3BCC908, 0xBB67AE8584CAA73B,
    0x3C6EF372FE94F82B, 0xA54FF53A5F1D36F1,
    0x510E527FADE682D1, 0x9B05688C2B3E6C1F,
    0x1F83D9ABFB41BD6B, 0x5BE0CD19137E2179,
)

# Message word permutations, one row per round (rounds 10 and 11 reuse rows 0 and 1)
SIGMA = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15),
    (14, 10, 4, 8, 9, 15, 13, 6, 1, 12, 0, 2, 11, 7, 5, 3),
    (11, 8, 12, 0, 5, 2, 15, 13, 10, 14, 3, 6, 7, 1, 9, 4),
    (7, 9, 3, 1, 13, 12, 11, 14, 2, 6, 5, 10, 4, 0, 15, 8),
    (9, 0, 5, 7, 2, 4, 10, 15, 14, 1, 11, 12, 6, 8, 3, 13),
    (2, 12, 6, 10, 0, 11, 8, 3, 4, 13, 7, 5, 15, 14, 1, 9),
    (12, 5, 1, 15, 14, 13, 4, 10, 0, 7, 6, 3, 9, 2, 8, 11),
    (13, 11, 7, 14, 12, 1, 3, 9, 5, 0, 15, 4, 8, 6, 2, 10),
    (6, 15, 14, 9, 11, 3, 0, 8, 12, 2, 13, 7, 1, 4, 10, 5),
    (10, 2, 8, 4, 7, 6, 1, 5, 15, 11, 9, 14, 3, 12, 13, 0),
)

ROUNDS = 12

_BLOCK_WORDS = struct.Struct("<16Q")
_STATE_WORDS = struct.Struct("<8Q")


def _rotr64(value: int, shift: int) -> int:
    return ((value >> shift) | (value << (64 - shift))) & MASK64


def _g(v: List[int], a: int, b: int, c: int, d: int, x: int, y: int) -> None:
    """The BLAKE2b mixing function."""
    v[a] = (v[a] + v[b] + x) & MASK64
    v[d] = _rotr64(v[d] ^ v[a], 32)
    v[c] = (v[c] + v[d]) & MASK64
    v[b] = _rotr64(v[b] ^ v[c], 24)
    v[a] = (v[a] + v[b] + y) & MASK64
    v[d] = _rotr64(v[d] ^ v[a], 16)
    v[c] = (v[c] + v[d]) & MASK64
    v[b] = _rotr64(v[b] ^ v[c], 63)


def _compress(h: Sequence[int], block: BytesLike, counter: int, last: bool) -> List[int]:
    """
    Compress one 128-byte block into the chaining state.

    Args:
        h: Current 8-word state
        block: Exactly 128 bytes
        counter: Total bytes hashed so far, including this block
        last: Whether this is the final block

    Returns:
        The new 8-word state
    """
    m = _BLOCK_WORDS.unpack(block)

    v = list(h) + list(IV)
    v[12] ^= counter & MASK64
    v[13] ^= (counter >> 64) & MASK64
    if last:
        v[14] ^= MASK64

    for round_index in range(ROUNDS):
        s = SIGMA[round_index % 10]

        # Columns
        _g(v, 0, 4, 8, 12, m[s[0]], m[s[1]])
        _g(v, 1, 5, 9, 13, m[s[2]], m[s[3]])
        _g(v, 2, 6, 10, 14, m[s[4]], m[s[5]])
        _g(v, 3, 7, 11, 15, m[s[6]], m[s[7]])

        # Diagonals
        _g(v, 0, 5, 10, 15, m[s[8]], m[s[9]])
        _g(v, 1, 6, 11, 12, m[s[10]], m[s[11]])
        _g(v, 2, 7, 8, 13, m[s[12]], m[s[13]])
        _g(v, 3, 4, 9, 14, m[s[14]], m[s[15]])

    return [h[i] ^ v[i] ^ v[i + 8] for i in range(8)]


def _check_output_length(output_length: object) -> int:
    if (
        isinstance(output_length, bool)
        or not isinstance(output_length, int)
        or not 1 <= output_length <= BLAKE2B_MAX_OUTPUT_SIZE
    ):
        raise InvalidOutputLengthError(output_length)
    return output_length


class Blake2b:
    """
    Incremental BLAKE2b hasher.

    Follows the ``hashlib`` object conventions so it can be swapped in
    wherever a hash object is expected::

        h = Blake2b(digest_size=32)
        h.update(b"hello ")
        h.update(b"world")
        h.hexdigest()

    The final block is held back until ``digest()`` so that an input whose
    length is a multiple of 128 is finalized on its last data block.
    """

    name = "blake2b"
    block_size = BLAKE2B_BLOCK_SIZE

    def __init__(self, data: BytesLike = b"", digest_size: int = 32) -> None:
        self.digest_size = _check_output_length(digest_size)

        state = list(IV)
        state[0] ^= 0x01010000 ^ self.digest_size
        self._state = state
        self._counter = 0
        self._buffer = b""

        self.update(data)

    def update(self, data: BytesLike) -> None:
        """Feed more bytes into the hash."""
        if isinstance(data, str):
            raise TypeError("Strings must be encoded before hashing")
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"a bytes-like object is required, not {type(data).__name__!r}")

        buffer = self._buffer + bytes(data)
        offset = 0

        # Keep at least one byte buffered; the last block must be compressed as final
        while len(buffer) - offset > BLAKE2B_BLOCK_SIZE:
            self._counter = (self._counter + BLAKE2B_BLOCK_SIZE) & MASK128
            self._state = _compress(
                self._state,
                buffer[offset : offset + BLAKE2B_BLOCK_SIZE],
                self._counter,
                last=False,
            )
            offset += BLAKE2B_BLOCK_SIZE

        self._buffer = buffer[offset:]

    def digest(self) -> bytes:
        """Return the digest of the data fed so far. The hasher stays usable."""
        counter = (self._counter + len(self._buffer)) & MASK128
        block = self._buffer.ljust(BLAKE2B_BLOCK_SIZE, b"\x00")
        state = _compress(self._state, block, counter, last=True)
        return _STATE_WORDS.pack(*state)[: self.digest_size]

    def hexdigest(self) -> str:
        """Return the digest as a lowercase hex string."""
        return self.digest().hex()

    def copy(self) -> "Blake2b":
        """Return an independent copy of the hasher."""
        clone = Blake2b.__new__(Blake2b)
        clone.digest_size = self.digest_size
        clone._state = list(self._state)
        clone._counter = self._counter
        clone._buffer = self._buffer
        return clone


def blake2b(data: BytesLike, output_length: int = 32) -> bytes:
    """
    Compute a BLAKE2b digest.

    Args:
        data: Input bytes
        output_length: Digest length in bytes (1-64)

    Returns:
        Exactly ``output_length`` digest bytes

    Raises:
        InvalidOutputLengthError: If output_length is outside 1..64
    """
    return Blake2b(data, digest_size=output_length).digest()
