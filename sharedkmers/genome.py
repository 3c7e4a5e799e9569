############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Sequence sources.

A genome is an ordered collection of contigs, each a (name, bases) pair.
Every genome class here can be iterated any number of times and yields the same
contigs in the same order each time, which is required for the second pass
over the target genome.
"""

import logging
import os
from typing import Iterable, Iterator, List, NamedTuple, Tuple, Union

from Bio.SeqIO.FastaIO import SimpleFastaParser
from Bio.SeqIO.QualityIO import FastqGeneralIterator

from .errors import SequenceReadError
from .file_utils import READ_ERRORS, open_compressed, sequence_file_format

logger = logging.getLogger('SharedKmers')

# (title, sequence, ...) tuples without building Seq objects
RECORD_PARSERS = {
    "fasta": SimpleFastaParser,
    "fastq": FastqGeneralIterator,
}


class Contig(NamedTuple):
    name: str
    bases: bytes


def _to_bytes(bases: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(bases, str):
        return bases.encode("ascii", errors="replace")
    return bytes(bases)


def contig_id(title: str) -> str:
    """First word of the record header, as Biopython uses for record ids."""
    words = title.split(None, 1)
    return words[0] if words else ""


class InMemoryGenome:
    """Genome held in memory as a list of contigs."""

    def __init__(self, contigs: Iterable[Tuple[str, Union[str, bytes]]], name: str = "genome"):
        self.name = name
        self.contigs: List[Contig] = [Contig(str(contig_name), _to_bytes(bases)) for contig_name, bases in contigs]

    @classmethod
    def from_genome(cls, genome) -> 'InMemoryGenome':
        """Buffer a single-pass source so it can be scanned again."""
        return cls(list(genome), name=getattr(genome, "name", "genome"))

    def __iter__(self) -> Iterator[Contig]:
        return iter(self.contigs)

    def __len__(self):
        return len(self.contigs)

    def __repr__(self):
        return "InMemoryGenome(%s, %d contigs)" % (self.name, len(self.contigs))


class FastxGenome:
    """
    Genome backed by a [compressed] FASTA/FASTQ file.

    The file is re-opened and parsed on every iteration, so nothing but the current
    contig is kept in memory. Decompression and parse errors are raised as SequenceReadError.
    """

    def __init__(self, file_name: str):
        self.file_name = file_name
        self.name = os.path.basename(file_name)
        self.seq_format = sequence_file_format(file_name)

    def __iter__(self) -> Iterator[Contig]:
        logger.debug("Reading %s as %s" % (self.file_name, self.seq_format))
        parser = RECORD_PARSERS[self.seq_format]
        # latin-1 maps every byte to one character, so unexpected bytes reach the encoder unchanged
        with open_compressed(self.file_name, "rt", encoding="latin-1") as handle:
            try:
                for record in parser(handle):
                    title, seq = record[0], record[1]
                    yield Contig(contig_id(title), seq.encode("latin-1"))
            except READ_ERRORS as e:
                raise SequenceReadError("Failed to read %s: %s" % (self.file_name, str(e))) from e

    def file_size(self) -> int:
        return os.path.getsize(self.file_name)

    def __repr__(self):
        return "FastxGenome(%s)" % self.file_name
