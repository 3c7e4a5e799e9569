############################################################################
# Copyright (c) 2022-2026 University of Helsinki
# All Rights Reserved
# See file LICENSE for details.
############################################################################

import bz2
import gzip
import io
import logging
import lzma
import os
import sys

import zstandard

from .errors import InputFormatError, InvalidOutputOptionError

logger = logging.getLogger('SharedKmers')

# compression name -> magic bytes at the start of the file
COMPRESSION_MAGIC = {
    "gzip": b'\x1f\x8b',
    "bzip2": b'BZh',
    "xz": b'\xfd7zXZ\x00',
    "zstd": b'\x28\xb5\x2f\xfd',
}
MAGIC_LEN = max(len(m) for m in COMPRESSION_MAGIC.values())

# errors raised while decompressing or parsing truncated or corrupted input
READ_ERRORS = (OSError, EOFError, ValueError, lzma.LZMAError, zstandard.ZstdError)

COMPRESSION_EXTENSIONS = {
    ".gz": "gzip", ".gzip": "gzip",
    ".bz2": "bzip2", ".bzip2": "bzip2",
    ".xz": "xz", ".lzma": "xz",
    ".zst": "zstd", ".zstd": "zstd",
}

FASTA_EXTENSIONS = ['.fa', '.fasta', '.fna', '.fas', '.fsa']
FASTQ_EXTENSIONS = ['.fq', '.fastq']

# -O/--output-type letter -> compression name, None = uncompressed
OUTPUT_TYPES = {
    "u": None,
    "b": "bzip2",
    "g": "gzip",
    "l": "xz",
    "z": "zstd",
}
COMPRESSION_LEVEL_RANGES = {
    "gzip": (1, 9),
    "bzip2": (1, 9),
    "xz": (0, 9),
    "zstd": (1, 22),
}


def detect_compression(file_name):
    with open(file_name, "rb") as f:
        start = f.read(MAGIC_LEN)
    for compression, magic in COMPRESSION_MAGIC.items():
        if start.startswith(magic):
            return compression
    return None


def open_compressed(file_name, mode="rt", encoding=None):
    """
    Open a possibly compressed file for reading.

    Compression is detected from the magic bytes, so misleading extensions do not matter.
    """
    compression = detect_compression(file_name)
    logger.debug("Opening %s (%s)" % (file_name, compression if compression else "uncompressed"))
    if compression == "gzip":
        return gzip.open(file_name, mode, encoding=encoding)
    if compression == "bzip2":
        return bz2.open(file_name, mode, encoding=encoding)
    if compression == "xz":
        return lzma.open(file_name, mode, encoding=encoding)
    if compression == "zstd":
        return zstandard.open(file_name, mode, encoding=encoding)
    return open(file_name, mode, encoding=encoding)


def strip_compression_extension(file_name):
    fname, outer_ext = os.path.splitext(os.path.basename(file_name))
    if outer_ext.lower() in COMPRESSION_EXTENSIONS:
        return fname
    return os.path.basename(file_name)


def sequence_file_format(file_name):
    """Return Biopython format name ("fasta" or "fastq") based on the file extension."""
    fname, ext = os.path.splitext(strip_compression_extension(file_name))
    low_ext = ext.lower()
    if low_ext in FASTQ_EXTENSIONS:
        return "fastq"
    if low_ext in FASTA_EXTENSIONS or not low_ext:
        return "fasta"
    if low_ext in ['.bam', '.sam', '.gb', '.gbk', '.embl']:
        raise InputFormatError("Unsupported sequence format %s for file %s" % (low_ext, file_name))
    logger.debug("Unknown extension %s for %s, assuming FASTA" % (low_ext, file_name))
    return "fasta"


def compression_from_extension(file_name):
    _, ext = os.path.splitext(file_name)
    return COMPRESSION_EXTENSIONS.get(ext.lower())


class OutputConfig:
    """
    Output destination and compression settings.

    Args:
        path: output file name, None or "-" for stdout
        output_type: one of u|b|g|l|z, None to infer from the file extension
        compress_level: codec-specific compression level
    """

    def __init__(self, path=None, output_type=None, compress_level=6):
        self.path = None if path in (None, "-") else path
        if output_type is not None and output_type not in OUTPUT_TYPES:
            raise InvalidOutputOptionError("Unknown output type %s, choose one of %s" %
                                           (output_type, "|".join(OUTPUT_TYPES.keys())))
        if output_type is not None:
            self.compression = OUTPUT_TYPES[output_type]
        elif self.path is not None:
            self.compression = compression_from_extension(self.path)
        else:
            self.compression = None
        self.compress_level = compress_level
        if self.compression is not None:
            min_level, max_level = COMPRESSION_LEVEL_RANGES[self.compression]
            if not isinstance(compress_level, int) or not min_level <= compress_level <= max_level:
                raise InvalidOutputOptionError("Compression level for %s must be in [%d, %d], got %s" %
                                               (self.compression, min_level, max_level, str(compress_level)))

    def open(self):
        """Open output as a text stream; closing it never closes stdout."""
        target = self.path
        if target is None:
            target = _UnclosableStream(sys.stdout.buffer)
        if self.compression == "gzip":
            return gzip.open(target, "wt", compresslevel=self.compress_level)
        if self.compression == "bzip2":
            return bz2.open(target, "wt", compresslevel=self.compress_level)
        if self.compression == "xz":
            return lzma.open(target, "wt", preset=self.compress_level)
        if self.compression == "zstd":
            return zstandard.open(target, "wt", cctx=zstandard.ZstdCompressor(level=self.compress_level))
        if self.path is None:
            return io.TextIOWrapper(io.BufferedWriter(target), encoding="ascii")
        return open(self.path, "wt", encoding="ascii")

    def __repr__(self):
        return "OutputConfig(path=%r, compression=%r, compress_level=%r)" % \
            (self.path, self.compression, self.compress_level)


class _UnclosableStream(io.RawIOBase):
    def __init__(self, stream):
        self.stream = stream

    def writable(self):
        return True

    def write(self, b):
        return self.stream.write(b)

    def flush(self):
        self.stream.flush()

    def close(self):
        if not self.closed:
            self.flush()
        super().close()
