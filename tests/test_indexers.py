############################################################################
# Copyright (c) 2025-2026 University of Helsinki
# All Rights Reserved
# See file LICENSE for details.
############################################################################

import numpy
import pytest
from sharedkmers.encoding import encode_kmer
from sharedkmers.genome import InMemoryGenome
from sharedkmers.indexers import (
    FrozenError,
    HitMap,
    OccurrenceRecord,
    Position,
    QueryMatcher,
    TargetIndexer,
    TargetLocator,
    TargetSet,
    collect_batch_occurrences,
    isin_sorted,
    sorted_key_array,
)
from sharedkmers.scanner import ContigBatch, WindowScanner

TARGET = InMemoryGenome([("t1", "ACGTACGTNACG"), ("t2", "TTTTACG")])
QUERY = InMemoryGenome([("q1", "GGACGTTT"), ("q2", "CGTA"), ("q3", "NNNN")])


def build_target_set(genome, k, vectorized=True):
    return TargetIndexer().index(WindowScanner(genome, k), vectorized)


class TestTargetIndexer:
    """Phase 1: distinct target k-mers."""

    @pytest.mark.parametrize("vectorized", [True, False])
    def test_distinct_kmers(self, vectorized):
        target_set = build_target_set(TARGET, 3, vectorized)
        expected = {encode_kmer(x) for x in ["ACG", "CGT", "GTA", "TAC", "TTT", "TTA"]}
        assert set(target_set) == expected
        assert len(target_set) == 6

    @pytest.mark.parametrize("vectorized", [True, False])
    def test_counters(self, vectorized):
        indexer = TargetIndexer()
        indexer.index(WindowScanner(TARGET, 3), vectorized)
        # t1: 10 windows, 3 contain N; t2: 5 windows
        assert indexer.window_count == 15
        assert indexer.skipped_count == 3

    def test_frozen_after_index(self):
        target_set = build_target_set(TARGET, 3)
        assert target_set.frozen
        with pytest.raises(FrozenError):
            target_set.add(0)
        with pytest.raises(FrozenError):
            target_set.update([0])

    def test_empty_target(self):
        assert len(build_target_set(InMemoryGenome([]), 3)) == 0

    def test_merge_partials(self):
        indexer = TargetIndexer()
        indexer.merge({1, 2}, 5, 1)
        indexer.merge({2, 3}, 4, 0)
        target_set = indexer.finalize()
        assert set(target_set) == {1, 2, 3}
        assert indexer.window_count == 9
        assert indexer.skipped_count == 1


class TestQueryMatcher:
    """Phase 2: query occurrences of target k-mers."""

    @pytest.mark.parametrize("vectorized", [True, False])
    def test_hits(self, vectorized):
        target_set = build_target_set(TARGET, 3)
        hits = QueryMatcher(target_set).collect(WindowScanner(QUERY, 3), vectorized)
        # q1 GGACGTTT: GGA GAC ACG CGT GTT TTT; q2 CGTA: CGT GTA
        assert set(hits.keys()) == {encode_kmer(x) for x in ["ACG", "CGT", "TTT", "GTA"]}
        cgt = hits[encode_kmer("CGT")]
        assert cgt.count == 2
        assert cgt.positions == [Position("q1", 4), Position("q2", 1)]
        assert hits[encode_kmer("ACG")].positions == [Position("q1", 3)]
        assert hits[encode_kmer("TTT")].positions == [Position("q1", 6)]

    def test_subset_of_target_set(self):
        target_set = build_target_set(TARGET, 3)
        hits = QueryMatcher(target_set).collect(WindowScanner(QUERY, 3))
        assert all(v in target_set for v in hits.keys())

    def test_requires_frozen_target_set(self):
        with pytest.raises(FrozenError):
            QueryMatcher(TargetSet([1, 2]))

    def test_counters(self):
        matcher = QueryMatcher(build_target_set(TARGET, 3))
        matcher.collect(WindowScanner(QUERY, 3))
        assert matcher.window_count == 6 + 2 + 2
        assert matcher.skipped_count == 2

    def test_no_shared_kmers(self):
        target_set = build_target_set(InMemoryGenome([("t", "AAAAA")]), 3)
        hits = QueryMatcher(target_set).collect(WindowScanner(InMemoryGenome([("q", "CCCCC")]), 3))
        assert len(hits) == 0
        assert hits.frozen

    def test_merge_keeps_order(self):
        matcher = QueryMatcher(TargetSet([7]).freeze())
        first = OccurrenceRecord()
        first.add(Position("a", 1))
        second = OccurrenceRecord()
        second.add(Position("b", 3))
        second.add(Position("b", 9))
        matcher.merge({7: first})
        matcher.merge({7: second})
        hits = matcher.finalize()
        assert hits[7].count == 3
        assert hits[7].positions == [Position("a", 1), Position("b", 3), Position("b", 9)]


class TestTargetLocator:
    """Phase 3: target occurrences of shared k-mers."""

    @pytest.mark.parametrize("vectorized", [True, False])
    def test_locations(self, vectorized):
        target_set = build_target_set(TARGET, 3)
        query_hits = QueryMatcher(target_set).collect(WindowScanner(QUERY, 3))
        target_hits = TargetLocator(query_hits).collect(WindowScanner(TARGET, 3), vectorized)
        assert set(target_hits.keys()) == set(query_hits.keys())
        acg = target_hits[encode_kmer("ACG")]
        # t1 ACGTACGTNACG: 1, 5, 10; t2 TTTTACG: 5
        assert acg.count == 4
        assert acg.positions == [Position("t1", 1), Position("t1", 5), Position("t1", 10), Position("t2", 5)]
        assert target_hits[encode_kmer("TTT")].positions == [Position("t2", 1), Position("t2", 2)]
        # GTA appears once in target, TAC is not shared
        assert target_hits[encode_kmer("GTA")].count == 1
        assert encode_kmer("TAC") not in target_hits

    def test_requires_frozen_hits(self):
        with pytest.raises(FrozenError):
            TargetLocator(HitMap())

    def test_frozen_hits_reject_new_keys(self):
        hits = HitMap().freeze()
        with pytest.raises(FrozenError):
            hits.record_for(1)


class TestOccurrenceRecord:
    def test_add(self):
        record = OccurrenceRecord()
        record.add(Position("chr1", 5))
        record.add(Position("chr1", 2))
        assert record.count == 2
        assert record.positions == [Position("chr1", 5), Position("chr1", 2)]

    def test_position_str(self):
        assert str(Position("NC_001802.1", 739)) == "NC_001802.1:739"

    def test_equality(self):
        a = OccurrenceRecord()
        b = OccurrenceRecord()
        a.add(Position("x", 1))
        assert a != b
        b.add(Position("x", 1))
        assert a == b


class TestSortedKeys:
    def test_frozen_target_set_is_sorted_array(self):
        target_set = TargetSet([9, 3, (1 << 64) - 1, 3]).freeze()
        assert target_set.sorted_values.dtype == numpy.uint64
        assert target_set.sorted_values.tolist() == [3, 9, (1 << 64) - 1]
        assert len(target_set) == 3
        assert 9 in target_set
        assert (1 << 64) - 1 in target_set
        assert 4 not in target_set
        assert 10 not in target_set
        assert sorted_key_array(target_set) is target_set.sorted_values

    def test_sorted_key_array_from_keys(self):
        hits = {5: None, 1: None, 3: None}
        assert sorted_key_array(hits.keys()).tolist() == [1, 3, 5]
        assert len(sorted_key_array(set())) == 0

    def test_isin_sorted(self):
        keys = numpy.array([2, 7, 11], dtype=numpy.uint64)
        values = numpy.array([1, 2, 7, 8, 11, 12, 2], dtype=numpy.uint64)
        assert isin_sorted(values, keys).tolist() == [False, True, True, False, True, False, True]
        assert isin_sorted(values, numpy.empty(0, dtype=numpy.uint64)).tolist() == [False] * 7

    def test_batch_filtered_before_positions(self):
        batch = ContigBatch("chr1", 5,
                            numpy.array([1, 2, 4, 5], dtype=numpy.int64),
                            numpy.array([7, 3, 7, 8], dtype=numpy.uint64))
        occurrences = collect_batch_occurrences(batch, numpy.array([7], dtype=numpy.uint64))
        assert list(occurrences.keys()) == [7]
        assert occurrences[7].positions == [Position("chr1", 1), Position("chr1", 4)]
        assert collect_batch_occurrences(batch, numpy.empty(0, dtype=numpy.uint64)) == {}
