############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Three-pass shared k-mer matching.

TargetIndexer: distinct encodable k-mers of the target (no positions)
QueryMatcher: counts and positions of query k-mers present in the target set
TargetLocator: counts and positions of target k-mers present in the query hits

Each phase freezes its result before the next phase may use it as a filter.
"""

import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Set

import numpy

from .scanner import ContigBatch, KmerWindow, WindowScanner

logger = logging.getLogger('SharedKmers')


class Position(NamedTuple):
    contig: str
    # 1-based offset of the first k-mer base
    position: int

    def __str__(self):
        return "%s:%d" % (self.contig, self.position)


class OccurrenceRecord:
    """Occurrence count and positions of a single k-mer, in discovery order."""

    __slots__ = ("count", "positions")

    def __init__(self):
        self.count: int = 0
        self.positions: List[Position] = []

    def add(self, position: Position) -> None:
        self.count += 1
        self.positions.append(position)

    def extend(self, other: 'OccurrenceRecord') -> None:
        self.count += other.count
        self.positions.extend(other.positions)

    def __eq__(self, other):
        if not isinstance(other, OccurrenceRecord):
            return NotImplemented
        return self.count == other.count and self.positions == other.positions

    def __repr__(self):
        return "OccurrenceRecord(count=%d, positions=%s)" % (self.count, ",".join(map(str, self.positions)))


class FrozenError(RuntimeError):
    pass


def sorted_key_array(keys) -> numpy.ndarray:
    """Sorted uint64 array of k-mer values, for vectorized membership tests."""
    if isinstance(keys, TargetSet) and keys.frozen:
        return keys.sorted_values
    key_array = numpy.fromiter(keys, dtype=numpy.uint64, count=len(keys))
    key_array.sort()
    return key_array


def isin_sorted(values: numpy.ndarray, key_array: numpy.ndarray) -> numpy.ndarray:
    """Boolean mask of values present in the sorted key_array."""
    if len(key_array) == 0:
        return numpy.zeros(len(values), dtype=bool)
    idx = numpy.searchsorted(key_array, values)
    idx[idx == len(key_array)] = 0
    return key_array[idx] == values


class TargetSet:
    """
    Set of distinct target k-mer values; read-only once frozen.

    Frozen values are kept as a sorted uint64 array, which is smaller than a set
    of Python integers and is shared with the vectorized filters as is.
    """

    def __init__(self, values: Optional[Iterable[int]] = None):
        self._values: Set[int] = set(values) if values is not None else set()
        self.sorted_values: Optional[numpy.ndarray] = None
        self.frozen = False

    def _check_mutable(self):
        if self.frozen:
            raise FrozenError("target k-mer set is frozen")

    def add(self, value: int) -> None:
        self._check_mutable()
        self._values.add(value)

    def update(self, values: Iterable[int]) -> None:
        self._check_mutable()
        self._values.update(values)

    def freeze(self) -> 'TargetSet':
        if not self.frozen:
            self.frozen = True
            self.sorted_values = sorted_key_array(self._values)
            self._values = set()
        return self

    def __contains__(self, value) -> bool:
        if not self.frozen:
            return value in self._values
        i = int(self.sorted_values.searchsorted(numpy.uint64(value)))
        return i < len(self.sorted_values) and int(self.sorted_values[i]) == value

    def __len__(self):
        if self.frozen:
            return len(self.sorted_values)
        return len(self._values)

    def __iter__(self):
        if self.frozen:
            return iter(self.sorted_values.tolist())
        return iter(self._values)


class TargetIndexer:
    """
    Phase 1: collect distinct encodable k-mers of the target genome.

    Memory is proportional to the number of distinct k-mers, not to the genome length.
    """

    def __init__(self):
        self.target_set = TargetSet()
        self.window_count = 0
        self.skipped_count = 0

    def add_window(self, window: KmerWindow) -> None:
        self.window_count += 1
        if window.value is None:
            self.skipped_count += 1
            return
        self.target_set.add(window.value)

    def add_batch(self, batch: ContigBatch) -> None:
        self.window_count += batch.window_count
        self.skipped_count += batch.skipped
        self.target_set.update(numpy.unique(batch.values).tolist())

    def merge(self, partial: Set[int], window_count: int = 0, skipped_count: int = 0) -> None:
        self.window_count += window_count
        self.skipped_count += skipped_count
        self.target_set.update(partial)

    def index(self, scanner: WindowScanner, vectorized: bool = True) -> TargetSet:
        if vectorized:
            for batch in scanner.contig_batches():
                self.add_batch(batch)
        else:
            for window in scanner:
                self.add_window(window)
        return self.finalize()

    def finalize(self) -> TargetSet:
        logger.debug("Freezing target set, %d distinct k-mers from %d windows" % (len(self.target_set), self.window_count))
        return self.target_set.freeze()


class HitMap:
    """k-mer value -> OccurrenceRecord; read-only once frozen."""

    def __init__(self):
        self.records: Dict[int, OccurrenceRecord] = {}
        self.frozen = False

    def record_for(self, value: int) -> OccurrenceRecord:
        record = self.records.get(value)
        if record is None:
            if self.frozen:
                raise FrozenError("hit map is frozen")
            record = OccurrenceRecord()
            self.records[value] = record
        return record

    def freeze(self) -> 'HitMap':
        self.frozen = True
        return self

    def keys(self):
        return self.records.keys()

    def get(self, value: int) -> Optional[OccurrenceRecord]:
        return self.records.get(value)

    def items(self):
        return self.records.items()

    def __contains__(self, value) -> bool:
        return value in self.records

    def __getitem__(self, value: int) -> OccurrenceRecord:
        return self.records[value]

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


def collect_batch_occurrences(batch: ContigBatch, key_array: numpy.ndarray) -> Dict[int, OccurrenceRecord]:
    """Occurrences of k-mers from the sorted key_array within a single batch, in scan order."""
    occurrences: Dict[int, OccurrenceRecord] = {}
    mask = isin_sorted(batch.values, key_array)
    if not mask.any():
        return occurrences
    contig = batch.contig
    for pos, value in zip(batch.positions[mask].tolist(), batch.values[mask].tolist()):
        record = occurrences.get(value)
        if record is None:
            record = OccurrenceRecord()
            occurrences[value] = record
        record.add(Position(contig, pos))
    return occurrences


class OccurrenceCollector:
    """
    Accumulates counts and positions for k-mers that pass a membership filter.

    Values rejected by the filter are discarded immediately; batches are filtered
    before any of their values become Python objects.
    """

    def __init__(self, member_filter):
        self.member_filter = member_filter
        self.key_array = sorted_key_array(member_filter)
        self.hits = HitMap()
        self.window_count = 0
        self.skipped_count = 0

    def add_window(self, window: KmerWindow) -> None:
        self.window_count += 1
        if window.value is None:
            self.skipped_count += 1
            return
        if window.value in self.member_filter:
            self.hits.record_for(window.value).add(Position(window.contig, window.position))

    def add_batch(self, batch: ContigBatch) -> None:
        self.merge(collect_batch_occurrences(batch, self.key_array), batch.window_count, batch.skipped)

    def merge(self, partial: Dict[int, OccurrenceRecord], window_count: int = 0, skipped_count: int = 0) -> None:
        """Append per-contig results; partials must be merged in genome order."""
        self.window_count += window_count
        self.skipped_count += skipped_count
        for value, record in partial.items():
            self.hits.record_for(value).extend(record)

    def collect(self, scanner: WindowScanner, vectorized: bool = True) -> HitMap:
        if vectorized:
            for batch in scanner.contig_batches():
                self.add_batch(batch)
        else:
            for window in scanner:
                self.add_window(window)
        return self.finalize()

    def finalize(self) -> HitMap:
        logger.debug("Freezing hits, %d k-mers from %d windows" % (len(self.hits), self.window_count))
        return self.hits.freeze()


class QueryMatcher(OccurrenceCollector):
    """Phase 2: query k-mers present in the frozen target set."""

    def __init__(self, target_set: TargetSet):
        if not target_set.frozen:
            raise FrozenError("target k-mer set must be frozen before matching")
        OccurrenceCollector.__init__(self, target_set)


class TargetLocator(OccurrenceCollector):
    """Phase 3: target k-mers present in the frozen query hit map."""

    def __init__(self, query_hits: HitMap):
        if not query_hits.frozen:
            raise FrozenError("query hit map must be frozen before locating target k-mers")
        OccurrenceCollector.__init__(self, query_hits.keys())
