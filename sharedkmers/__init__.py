############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Shared k-mer search between two genomes.

Modules:
    encoding: 2-bit k-mer encoding and decoding
    scanner: sliding window scanner over genome contigs
    indexers: target indexing, query matching and target locating phases
    records: shared k-mer records and their output
    engine: three-phase search driver
"""

from .encoding import (
    check_kmer_size,
    encode_kmer,
    decode_kmer,
    encode_windows,
    RollingEncoder,
    MIN_KMER_SIZE,
    MAX_KMER_SIZE,
)
from .errors import (
    SharedKmersError,
    InvalidParameterError,
    InvalidKmerSizeError,
    InvalidOutputOptionError,
    InputFormatError,
    InvariantViolationError,
    SequenceReadError,
)
from .genome import Contig, InMemoryGenome, FastxGenome
from .scanner import KmerWindow, ContigBatch, WindowScanner
from .indexers import (
    Position,
    OccurrenceRecord,
    TargetSet,
    HitMap,
    TargetIndexer,
    QueryMatcher,
    TargetLocator,
)
from .records import SharedRecord, RecordEmitter
from .engine import MatchConfig, MatchStats, SharedKmerFinder
from .file_utils import OutputConfig

__version__ = "0.1.0"

__all__ = [
    # Encoding
    'check_kmer_size',
    'encode_kmer',
    'decode_kmer',
    'encode_windows',
    'RollingEncoder',
    'MIN_KMER_SIZE',
    'MAX_KMER_SIZE',
    # Errors
    'SharedKmersError',
    'InvalidParameterError',
    'InvalidKmerSizeError',
    'InvalidOutputOptionError',
    'InputFormatError',
    'InvariantViolationError',
    'SequenceReadError',
    # Sequence sources
    'Contig',
    'InMemoryGenome',
    'FastxGenome',
    # Scanning
    'KmerWindow',
    'ContigBatch',
    'WindowScanner',
    # Matching phases
    'Position',
    'OccurrenceRecord',
    'TargetSet',
    'HitMap',
    'TargetIndexer',
    'QueryMatcher',
    'TargetLocator',
    # Output
    'SharedRecord',
    'RecordEmitter',
    'OutputConfig',
    # Driver
    'MatchConfig',
    'MatchStats',
    'SharedKmerFinder',
]
