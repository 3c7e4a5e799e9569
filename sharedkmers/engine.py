############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Shared k-mer search between a target and a query genome.

Phases run strictly one after another:
1. distinct target k-mers (TargetIndexer)
2. query occurrences of target k-mers (QueryMatcher)
3. target occurrences of shared k-mers (TargetLocator)
Records are then emitted in ascending k-mer value order (RecordEmitter).

With threads > 1 contigs of a genome are scanned by a process pool and per-contig
results are merged in genome order, so the output does not depend on the number
of threads.
"""

import concurrent.futures
import logging
import multiprocessing
from collections import deque

import numpy

from .common import setup_worker_logging, _get_log_level, proper_plural_form
from .encoding import check_kmer_size
from .errors import InvalidParameterError, InvariantViolationError
from .indexers import TargetIndexer, QueryMatcher, TargetLocator, collect_batch_occurrences
from .records import RecordEmitter
from .scanner import WindowScanner, encode_contig

logger = logging.getLogger('SharedKmers')

# contigs submitted ahead per worker
PENDING_PER_THREAD = 2


class MatchConfig:
    def __init__(self, k=21, threads=1, vectorized=True):
        self.k = check_kmer_size(k)
        if isinstance(threads, bool) or not isinstance(threads, int) or threads < 1:
            raise InvalidParameterError("Number of threads must be a positive integer, got %r" % (threads,))
        self.threads = threads
        self.vectorized = vectorized

    def __repr__(self):
        return "MatchConfig(k=%d, threads=%d, vectorized=%s)" % (self.k, self.threads, self.vectorized)


class MatchStats:
    """Summary counters of a run, reported in the log and optionally in a stats file."""

    def __init__(self):
        self.target_windows = 0
        self.target_skipped = 0
        self.query_windows = 0
        self.query_skipped = 0
        self.target_kmers = 0
        self.shared_kmers = 0
        self.emitted_records = 0

    def as_dict(self):
        return {
            "target_windows": self.target_windows,
            "target_skipped_windows": self.target_skipped,
            "query_windows": self.query_windows,
            "query_skipped_windows": self.query_skipped,
            "target_distinct_kmers": self.target_kmers,
            "shared_kmers": self.shared_kmers,
            "emitted_records": self.emitted_records,
        }

    def __iter__(self):
        for k, v in self.as_dict().items():
            yield "%s\t%d" % (k, v)

    def __str__(self):
        return "\n".join(self) + "\n"

    def dump(self, file_name):
        with open(file_name, "w") as stat_out:
            stat_out.write(str(self))


# Filled by _init_worker in pool processes only
_worker_k = None
_worker_keys = None


def _init_worker(k, key_array, log_level):
    global _worker_k, _worker_keys
    _worker_k = k
    _worker_keys = key_array
    setup_worker_logging(log_level)


def _index_contig(contig):
    distinct = set()
    windows = 0
    skipped = 0
    for batch in encode_contig(contig, _worker_k):
        distinct.update(numpy.unique(batch.values).tolist())
        windows += batch.window_count
        skipped += batch.skipped
    return distinct, windows, skipped


def _collect_contig(contig):
    occurrences = {}
    windows = 0
    skipped = 0
    for batch in encode_contig(contig, _worker_k):
        for value, record in collect_batch_occurrences(batch, _worker_keys).items():
            if value in occurrences:
                occurrences[value].extend(record)
            else:
                occurrences[value] = record
        windows += batch.window_count
        skipped += batch.skipped
    return occurrences, windows, skipped


class SharedKmerFinder:
    """
    Finds k-mers shared by a target and a query genome.

    Genomes are iterables of Contig (name, bases) that can be iterated more than once;
    the target is scanned twice. The target should be the smaller genome: its distinct
    k-mers are held in memory.
    """

    def __init__(self, config: MatchConfig):
        self.config = config
        self.k = config.k
        self.stats = MatchStats()

    def _run_in_parallel(self, genome, worker_function, key_array, consumer):
        mp_context = multiprocessing.get_context('spawn')
        max_pending = self.config.threads * PENDING_PER_THREAD
        with concurrent.futures.ProcessPoolExecutor(max_workers=self.config.threads,
                                                    mp_context=mp_context,
                                                    initializer=_init_worker,
                                                    initargs=(self.k, key_array, _get_log_level())) as proc:
            # results are consumed in submission order to keep positions in scan order
            pending = deque()
            for contig in genome:
                pending.append(proc.submit(worker_function, contig))
                if len(pending) >= max_pending:
                    consumer.merge(*pending.popleft().result())
            while pending:
                consumer.merge(*pending.popleft().result())

    def index_target(self, target):
        logger.info("Indexing target k-mers, k = %d" % self.k)
        indexer = TargetIndexer()
        if self.config.threads > 1:
            self._run_in_parallel(target, _index_contig, None, indexer)
            target_set = indexer.finalize()
        else:
            target_set = indexer.index(WindowScanner(target, self.k), self.config.vectorized)
        self.stats.target_windows = indexer.window_count
        self.stats.target_skipped = indexer.skipped_count
        self.stats.target_kmers = len(target_set)
        logger.debug("Target: %s, %d skipped" % (proper_plural_form("window", indexer.window_count),
                                                  indexer.skipped_count))
        logger.info("%d unique k-mers in target" % len(target_set))
        return target_set

    def _collect(self, genome, collector):
        if self.config.threads > 1:
            self._run_in_parallel(genome, _collect_contig, collector.key_array, collector)
            return collector.finalize()
        return collector.collect(WindowScanner(genome, self.k), self.config.vectorized)

    def match_query(self, query, target_set):
        logger.info("Matching query k-mers against target")
        matcher = QueryMatcher(target_set)
        query_hits = self._collect(query, matcher)
        self.stats.query_windows = matcher.window_count
        self.stats.query_skipped = matcher.skipped_count
        self.stats.shared_kmers = len(query_hits)
        logger.debug("Query: %s, %d skipped" % (proper_plural_form("window", matcher.window_count),
                                                 matcher.skipped_count))
        logger.info("%d shared k-mers between target and query" % len(query_hits))
        return query_hits

    def locate_target(self, target, query_hits):
        logger.info("Locating shared k-mers in target")
        locator = TargetLocator(query_hits)
        target_hits = self._collect(target, locator)
        if locator.window_count != self.stats.target_windows or locator.skipped_count != self.stats.target_skipped:
            raise InvariantViolationError("Target genome changed between passes: %d/%d windows/skipped in the first pass, "
                                          "%d/%d in the second" % (self.stats.target_windows, self.stats.target_skipped,
                                                                   locator.window_count, locator.skipped_count))
        return target_hits

    def find(self, target, query) -> RecordEmitter:
        """Run all three phases and return an emitter for the shared k-mer records."""
        target_set = self.index_target(target)
        query_hits = self.match_query(query, target_set)
        del target_set
        target_hits = self.locate_target(target, query_hits)
        return RecordEmitter(self.k, query_hits, target_hits)

    def run(self, target, query, output_config) -> MatchStats:
        """Find shared k-mers and write them according to output_config."""
        emitter = self.find(target, query)
        with output_config.open() as handle:
            self.stats.emitted_records = emitter.write(handle)
        return self.stats
