############################################################################
# Copyright (c) 2025-2026 University of Helsinki
# All Rights Reserved
# See file LICENSE for details.
############################################################################

import pytest
from sharedkmers.encoding import encode_kmer
from sharedkmers.errors import InvalidKmerSizeError
from sharedkmers.genome import FastxGenome, InMemoryGenome
from sharedkmers.scanner import WindowScanner, KmerWindow, window_count


@pytest.fixture
def genome():
    return InMemoryGenome([("chr1", "ACGTAC"), ("short", "AC"), ("chr2", "GGNTTA")])


class TestWindowScanner:
    """Test sliding window scanner."""

    def test_windows(self, genome):
        windows = list(WindowScanner(genome, 3))
        assert windows == [
            KmerWindow("chr1", 1, encode_kmer("ACG")),
            KmerWindow("chr1", 2, encode_kmer("CGT")),
            KmerWindow("chr1", 3, encode_kmer("GTA")),
            KmerWindow("chr1", 4, encode_kmer("TAC")),
            KmerWindow("chr2", 1, None),
            KmerWindow("chr2", 2, None),
            KmerWindow("chr2", 3, None),
            KmerWindow("chr2", 4, encode_kmer("TTA")),
        ]

    def test_window_count_per_contig(self, genome):
        windows = list(WindowScanner(genome, 2))
        assert sum(1 for w in windows if w.contig == "chr1") == 5
        assert sum(1 for w in windows if w.contig == "short") == 1
        assert sum(1 for w in windows if w.contig == "chr2") == 5

    def test_short_contig_has_no_windows(self, genome):
        windows = list(WindowScanner(genome, 4))
        assert all(w.contig != "short" for w in windows)

    def test_k_larger_than_all_contigs(self, genome):
        assert list(WindowScanner(genome, 10)) == []

    def test_empty_genome(self):
        assert list(WindowScanner(InMemoryGenome([]), 5)) == []

    def test_empty_contig(self):
        genome = InMemoryGenome([("empty", ""), ("chr1", "ACGT")])
        assert [w.contig for w in WindowScanner(genome, 4)] == ["chr1"]

    def test_restartable(self, genome):
        scanner = WindowScanner(genome, 3)
        first_pass = list(scanner)
        assert list(scanner) == []
        scanner.reset()
        assert list(scanner) == first_pass
        assert list(scanner.restart()) == first_pass

    def test_reset_in_the_middle(self, genome):
        scanner = WindowScanner(genome, 3)
        first = [next(scanner) for _ in range(5)]
        scanner.reset()
        assert [next(scanner) for _ in range(5)] == first

    def test_state(self, genome):
        scanner = WindowScanner(genome, 3)
        assert scanner.state == (0, 0)
        next(scanner)
        assert scanner.state == (0, 1)
        for _ in range(4):
            next(scanner)
        # first window of the third contig was produced, "short" has none
        assert scanner.state == (2, 1)

    def test_invalid_window_does_not_leak(self):
        genome = InMemoryGenome([("chr1", "ACNACGT")])
        values = [w.value for w in WindowScanner(genome, 3)]
        assert values == [None, None, None, encode_kmer("ACG"), encode_kmer("CGT")]

    def test_contigs_do_not_merge(self):
        genome = InMemoryGenome([("a", "AC"), ("b", "GT")])
        assert list(WindowScanner(genome, 3)) == []

    def test_invalid_k(self, genome):
        with pytest.raises(InvalidKmerSizeError):
            WindowScanner(genome, 33)

    def test_window_count(self):
        assert window_count(10, 3) == 8
        assert window_count(3, 3) == 1
        assert window_count(2, 3) == 0


class TestContigBatches:
    @pytest.mark.parametrize("batch_size", [1, 2, 1 << 16])
    def test_same_as_cursor(self, genome, batch_size):
        for k in [1, 2, 3, 4]:
            scanner = WindowScanner(genome, k)
            from_batches = []
            total = 0
            for batch in scanner.contig_batches(batch_size):
                total += batch.window_count
                from_batches += [KmerWindow(batch.contig, p, v)
                                 for p, v in zip(batch.positions.tolist(), batch.values.tolist())]
            windows = list(scanner)
            assert total == len(windows)
            assert from_batches == [w for w in windows if w.value is not None]

    def test_batches_per_contig(self, genome):
        batches = list(WindowScanner(genome, 3).contig_batches())
        # "short" is shorter than k and produces no batch
        assert [b.contig for b in batches] == ["chr1", "chr2"]
        assert [b.window_count for b in batches] == [4, 4]
        assert [b.skipped for b in batches] == [0, 3]

    def test_batches_are_bounded(self, genome):
        batches = list(WindowScanner(genome, 2).contig_batches(batch_size=2))
        assert all(b.window_count <= 2 for b in batches)
        assert [b.contig for b in batches] == ["chr1", "chr1", "chr1", "short", "chr2", "chr2", "chr2"]
        assert sum(b.skipped for b in batches) == 2

    def test_positions_are_one_based(self, genome):
        batch = next(WindowScanner(genome, 3).contig_batches())
        assert batch.positions.tolist() == [1, 2, 3, 4]


class TestScannerResources:
    def test_reset_closes_contig_source(self, tmp_path):
        path = tmp_path / "genome.fa"
        path.write_text(">chr1\nACGTACGT\n>chr2\nGGGGTTTT\n")
        scanner = WindowScanner(FastxGenome(str(path)), 3)
        next(scanner)
        contig_iter = scanner._contig_iter
        scanner.reset()
        # a closed generator is exhausted
        assert list(contig_iter) == []
        assert [w.contig for w in scanner][:1] == ["chr1"]

    def test_reset_with_list_source(self, genome):
        scanner = WindowScanner(genome, 3)
        next(scanner)
        scanner.reset()
        assert next(scanner) == KmerWindow("chr1", 1, encode_kmer("ACG"))
