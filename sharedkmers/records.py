############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Output records for shared k-mers.

Each record is written as a FASTA entry:
>id=<value> tcount=<n> qcount=<n> tpos=<contig:pos,...> qpos=<contig:pos,...>
<decoded k-mer>
"""

import logging
from typing import Iterator, List, NamedTuple

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from .encoding import decode_kmer
from .errors import InvariantViolationError
from .indexers import HitMap, Position

logger = logging.getLogger('SharedKmers')


def positions_to_str(positions: List[Position]) -> str:
    return ",".join(str(p) for p in positions)


class SharedRecord(NamedTuple):
    value: int
    kmer: str
    tcount: int
    tpos: List[Position]
    qcount: int
    qpos: List[Position]

    def record_id(self) -> str:
        return "id=%d" % self.value

    def description(self) -> str:
        return "tcount=%d qcount=%d tpos=%s qpos=%s" % \
            (self.tcount, self.qcount, positions_to_str(self.tpos), positions_to_str(self.qpos))

    def header(self) -> str:
        return self.record_id() + " " + self.description()

    def to_seq_record(self) -> SeqRecord:
        return SeqRecord(Seq(self.kmer), id=self.record_id(), description=self.description())

    def __str__(self):
        return ">%s\n%s" % (self.header(), self.kmer)


class RecordEmitter:
    """
    Joins query hits and target occurrences into SharedRecord objects.

    Records are produced in ascending k-mer value order. A query hit without
    target occurrences means the phases applied different skip policies and is
    reported as InvariantViolationError.
    """

    def __init__(self, k: int, query_hits: HitMap, target_hits: HitMap):
        self.k = k
        self.query_hits = query_hits
        self.target_hits = target_hits
        self.emitted = 0

    def _check_key_sets(self):
        extra = [v for v in self.target_hits.keys() if v not in self.query_hits]
        if extra:
            raise InvariantViolationError("%d target k-mer(s) located that were never matched in query, e.g. %d" %
                                          (len(extra), extra[0]))

    def records(self) -> Iterator[SharedRecord]:
        self._check_key_sets()
        for value in sorted(self.query_hits.keys()):
            target_record = self.target_hits.get(value)
            if target_record is None:
                raise InvariantViolationError("shared k-mer %d (%s) has no target occurrences" %
                                              (value, decode_kmer(value, self.k)))
            query_record = self.query_hits[value]
            self.emitted += 1
            yield SharedRecord(value, decode_kmer(value, self.k),
                               target_record.count, target_record.positions,
                               query_record.count, query_record.positions)

    def write(self, handle) -> int:
        """Write all records to a text handle in FASTA format, return the number of records."""
        count = SeqIO.write((r.to_seq_record() for r in self.records()), handle, "fasta")
        logger.info("Written %d shared k-mer records" % count)
        return count
