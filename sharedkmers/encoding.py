############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
2-bit k-mer encoding.

Bases are packed into a single integer, 2 bits per base:
A=0, C=1, T=2, G=3 (U is read as T, lowercase is folded to uppercase).
The first base of a k-mer occupies the two least significant bits, so a k-mer
of length k fits into 2*k bits and k <= 32 always fits into uint64.

Windows containing any other symbol (N, IUPAC codes, gaps) are unencodable
and are reported as None; they are never miscoded.
"""

from typing import Iterator, Optional, Tuple, Union

import numpy

from .errors import InvalidKmerSizeError

MIN_KMER_SIZE = 1
MAX_KMER_SIZE = 32
BITS_PER_BASE = 2

NUCL2BIN = {'A': 0, 'C': 1, 'T': 2, 'G': 3, 'U': 2,
            'a': 0, 'c': 1, 't': 2, 'g': 3, 'u': 2}
BIN2NUCL = ["A", "C", "T", "G"]

# byte -> 2-bit code, INVALID_CODE for everything outside ACGTU/acgtu
INVALID_CODE = 4
BYTE2BIN = numpy.full(256, INVALID_CODE, dtype=numpy.uint8)
for _nucl, _code in NUCL2BIN.items():
    BYTE2BIN[ord(_nucl)] = _code
_BYTE2BIN_LIST = BYTE2BIN.tolist()

BATCH_WINDOWS = 1 << 16

BasesLike = Union[bytes, bytearray, memoryview, str]


def check_kmer_size(k) -> int:
    """
    Validate k-mer size.

    Args:
        k: Requested k-mer length

    Returns:
        k as int

    Raises:
        InvalidKmerSizeError: k is not an integer in [1, 32]
    """
    if isinstance(k, bool) or not isinstance(k, (int, numpy.integer)):
        raise InvalidKmerSizeError("k-mer size must be an integer, got %r" % (k,))
    if not MIN_KMER_SIZE <= k <= MAX_KMER_SIZE:
        raise InvalidKmerSizeError("k-mer size must be in [%d, %d], got %d" % (MIN_KMER_SIZE, MAX_KMER_SIZE, k))
    return int(k)


def kmer_mask(k: int) -> int:
    return (1 << (BITS_PER_BASE * k)) - 1


def _as_bytes(seq: BasesLike) -> bytes:
    if isinstance(seq, str):
        return seq.encode("ascii", errors="replace")
    return bytes(seq)


def encode_kmer(seq: BasesLike) -> Optional[int]:
    """
    Encode a single window of bases.

    Args:
        seq: k bases (str or bytes), 1 <= k <= 32

    Returns:
        packed k-mer value, or None if the window contains a non-ACGT symbol
    """
    bases = _as_bytes(seq)
    check_kmer_size(len(bases))
    value = 0
    for i, b in enumerate(bases):
        code = _BYTE2BIN_LIST[b]
        if code == INVALID_CODE:
            return None
        value |= code << (BITS_PER_BASE * i)
    return value


def decode_kmer(value: int, k: int) -> str:
    """Decode a packed k-mer value back into an uppercase base string."""
    k = check_kmer_size(k)
    value = int(value)
    if value < 0 or value > kmer_mask(k):
        raise ValueError("value %d does not fit into a %d-mer" % (value, k))
    return "".join(BIN2NUCL[(value >> (BITS_PER_BASE * i)) & 3] for i in range(k))


class RollingEncoder:
    """
    Incremental k-mer encoder.

    Each pushed base drops the oldest base of the window and appends the new one
    in O(1). An invalid base resets the run, so the encoder becomes ready again
    only after k consecutive valid bases.
    """

    def __init__(self, k: int):
        self.k = check_kmer_size(k)
        self.high_shift = BITS_PER_BASE * (self.k - 1)
        self.value = 0
        self.valid_run = 0

    def reset(self) -> None:
        self.value = 0
        self.valid_run = 0

    def push(self, base: int) -> Optional[int]:
        """
        Add the next base (as a byte value) to the window.

        Returns:
            value of the window ending at this base, or None if it is not encodable
            (contains an invalid base or fewer than k bases were seen)
        """
        code = _BYTE2BIN_LIST[base]
        if code == INVALID_CODE:
            self.value = 0
            self.valid_run = 0
            return None
        self.value = (self.value >> BITS_PER_BASE) | (code << self.high_shift)
        self.valid_run += 1
        if self.valid_run < self.k:
            return None
        return self.value


def encode_windows(seq: BasesLike, k: int,
                   batch_size: int = BATCH_WINDOWS) -> Iterator[Tuple[int, numpy.ndarray, numpy.ndarray]]:
    """
    Vectorized encoding of the windows of a contig, one chunk of windows at a time.

    Only the current chunk is materialized, so temporary memory is bounded by
    batch_size and not by the contig length.

    Args:
        seq: contig bases
        k: k-mer length
        batch_size: number of windows encoded at once

    Yields:
        (chunk_windows, offsets, values): number of windows in the chunk, 0-based offsets (int64)
        and k-mer values (uint64) of its encodable windows, in ascending offset order
    """
    k = check_kmer_size(k)
    bases = _as_bytes(seq)
    window_count = len(bases) - k + 1
    if window_count <= 0:
        return

    shifts = [numpy.uint64(BITS_PER_BASE * i) for i in range(k)]
    for start in range(0, window_count, batch_size):
        end = min(window_count, start + batch_size)
        chunk_windows = end - start
        # bases covered by windows [start, end)
        chunk = numpy.frombuffer(bases, dtype=numpy.uint8, count=chunk_windows + k - 1, offset=start)
        codes = BYTE2BIN[chunk]
        invalid = codes == INVALID_CODE
        # invalid_before[i] = number of invalid bases in chunk[:i]
        invalid_before = numpy.zeros(len(codes) + 1, dtype=numpy.int32)
        numpy.cumsum(invalid, dtype=numpy.int32, out=invalid_before[1:])
        valid = invalid_before[k:] == invalid_before[:chunk_windows]
        if not valid.any():
            yield chunk_windows, numpy.empty(0, dtype=numpy.int64), numpy.empty(0, dtype=numpy.uint64)
            continue
        codes[invalid] = 0
        codes64 = codes.astype(numpy.uint64)
        values = numpy.zeros(chunk_windows, dtype=numpy.uint64)
        for i in range(k):
            values |= codes64[i:i + chunk_windows] << shifts[i]
        offsets = numpy.flatnonzero(valid).astype(numpy.int64) + start
        yield chunk_windows, offsets, values[valid]
