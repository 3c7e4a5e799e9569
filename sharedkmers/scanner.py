############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Sliding window scanner over all contigs of a genome.

WindowScanner is an explicit cursor: its state is (contig index, window offset),
and reset() rewinds it to the beginning of the genome. Since the genome source is
replayable, the same windows are produced on every pass.
"""

import logging
from typing import Iterator, NamedTuple, Optional, Tuple

import numpy

from .encoding import BATCH_WINDOWS, RollingEncoder, check_kmer_size, encode_windows
from .genome import Contig

logger = logging.getLogger('SharedKmers')


class KmerWindow(NamedTuple):
    contig: str
    # 1-based start of the window within the contig
    position: int
    # packed k-mer or None when the window is not encodable
    value: Optional[int]


class ContigBatch(NamedTuple):
    """Consecutive windows of one contig, encoded at once."""
    contig: str
    # number of windows covered by the batch, encodable or not
    window_count: int
    # 1-based starts and values of encodable windows only, ascending by position
    positions: numpy.ndarray
    values: numpy.ndarray

    @property
    def skipped(self) -> int:
        return self.window_count - len(self.values)


def window_count(contig_len: int, k: int) -> int:
    return max(0, contig_len - k + 1)


def encode_contig(contig: Contig, k: int, batch_size: int = BATCH_WINDOWS) -> Iterator[ContigBatch]:
    """Batches of a single contig in window order; contigs shorter than k yield nothing."""
    for chunk_windows, offsets, values in encode_windows(contig.bases, k, batch_size):
        yield ContigBatch(contig.name, chunk_windows, offsets + 1, values)


class WindowScanner:
    """
    Lazy scanner producing a KmerWindow for every window start of every contig.

    Unencodable windows are yielded with value None; consumers decide to skip them.
    Contigs shorter than k produce no windows.
    """

    def __init__(self, genome, k: int):
        self.genome = genome
        self.k = check_kmer_size(k)
        self.encoder = RollingEncoder(self.k)
        self.reset()

    def reset(self) -> None:
        """Rewind the cursor to the first window of the first contig."""
        # a half-consumed file-backed source keeps its handle open until closed
        contig_iter = getattr(self, "_contig_iter", None)
        if contig_iter is not None and hasattr(contig_iter, "close"):
            contig_iter.close()
        self.contig_index = 0
        self.offset = 0
        self._contig_iter = None
        self._contig: Optional[Contig] = None
        self._started = False
        self.encoder.reset()

    def restart(self) -> 'WindowScanner':
        """Independent scanner over the same genome, positioned at the start."""
        return WindowScanner(self.genome, self.k)

    @property
    def state(self) -> Tuple[int, int]:
        """(contig index, 0-based offset) of the next window to be produced."""
        return self.contig_index, self.offset

    def _load_next_contig(self) -> bool:
        if self._contig_iter is None:
            self._contig_iter = iter(self.genome)
        try:
            contig = next(self._contig_iter)
        except StopIteration:
            self._contig = None
            return False
        if self._started:
            self.contig_index += 1
        self._started = True
        self._contig = contig
        self.offset = 0
        self.encoder.reset()
        for b in contig.bases[:self.k - 1]:
            self.encoder.push(b)
        return True

    def __iter__(self) -> Iterator[KmerWindow]:
        return self

    def __next__(self) -> KmerWindow:
        while True:
            if self._contig is None and not self._load_next_contig():
                raise StopIteration
            bases = self._contig.bases
            if self.offset + self.k <= len(bases):
                value = self.encoder.push(bases[self.offset + self.k - 1])
                window = KmerWindow(self._contig.name, self.offset + 1, value)
                self.offset += 1
                return window
            logger.debug("Scanned %d windows of contig %s" % (window_count(len(bases), self.k), self._contig.name))
            self._contig = None

    def contig_batches(self, batch_size: int = BATCH_WINDOWS) -> Iterator[ContigBatch]:
        """
        Vectorized pass over the whole genome, in batches of at most batch_size windows.

        Produces exactly the encodable windows of the cursor iteration, in the same order.
        Independent of the cursor state.
        """
        for contig in self.genome:
            windows = 0
            skipped = 0
            for batch in encode_contig(contig, self.k, batch_size):
                windows += batch.window_count
                skipped += batch.skipped
                yield batch
            logger.debug("Scanned %d windows of contig %s, %d skipped" % (windows, contig.name, skipped))
