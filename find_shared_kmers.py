#!/usr/bin/env python3
#
############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

"""
Find k-mers shared between a target and a query genome.

For every shared k-mer reports its value, occurrence counts and all 1-based positions
in both genomes. The target should be the smaller of the two genomes.
"""

import argparse
import logging
import os
import sys
from traceback import print_exc

from sharedkmers.common import set_logger
from sharedkmers.encoding import MIN_KMER_SIZE, MAX_KMER_SIZE
from sharedkmers.engine import MatchConfig, SharedKmerFinder
from sharedkmers.error_codes import SharedKmersExitCode, exit_with_code
from sharedkmers.errors import InputFormatError, InvalidParameterError, InvariantViolationError, SequenceReadError
from sharedkmers.file_utils import OUTPUT_TYPES, OutputConfig
from sharedkmers.genome import FastxGenome

logger = logging.getLogger('SharedKmers')


def parse_args(sys_argv):
    def add_hidden_option(*args, **kwargs):  # hidden from --help
        kwargs['help'] = argparse.SUPPRESS
        parser.add_argument(*args, **kwargs)

    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("target", type=str, help="target genome in [compressed] FASTA/FASTQ, the smaller one")
    parser.add_argument("query", type=str, help="query genome in [compressed] FASTA/FASTQ")
    parser.add_argument("--kmer", "-k", type=int, default=21,
                        help="k-mer size, %d-%d (21)" % (MIN_KMER_SIZE, MAX_KMER_SIZE))
    parser.add_argument("--output", "-o", type=str, help="output file; stdout if not set")
    parser.add_argument("--output-type", "-O", type=str, choices=list(OUTPUT_TYPES.keys()), metavar="u|b|g|l|z",
                        help="u: uncompressed; b: bzip2; g: gzip; l: xz/lzma; z: zstd. "
                             "Inferred from the output file extension if not set; stdout is uncompressed by default")
    parser.add_argument("--compress-level", "-l", type=int, default=6, metavar="INT",
                        help="compression level to use if compressing output (6)")
    parser.add_argument("--threads", "-t", type=int, default=1, help="number of processes to scan contigs (1)")
    parser.add_argument("--stats", type=str, help="write summary counters to this TSV file")
    add_hidden_option('--debug', action='store_true', default=False, help='Debug log output.')

    return parser.parse_args(sys_argv)


def check_args(args):
    for input_file in [args.target, args.query]:
        if not os.path.isfile(input_file):
            exit_with_code(SharedKmersExitCode.INPUT_FILE_NOT_FOUND, "Input file %s does not exist" % input_file)

    try:
        config = MatchConfig(k=args.kmer, threads=args.threads)
        output_config = OutputConfig(args.output, args.output_type, args.compress_level)
    except InvalidParameterError as e:
        exit_with_code(SharedKmersExitCode.INVALID_PARAMETER, str(e))

    if args.output:
        out_dir = os.path.dirname(args.output)
        if out_dir and not os.path.exists(out_dir):
            os.makedirs(out_dir, exist_ok=True)
    return config, output_config


def run_pipeline(args, config, output_config):
    try:
        target = FastxGenome(args.target)
        query = FastxGenome(args.query)
    except InputFormatError as e:
        exit_with_code(SharedKmersExitCode.INVALID_FILE_FORMAT, str(e))

    if target.file_size() > query.file_size():
        logger.warning("Target file %s is larger than query file %s; the target k-mer set is kept in memory, "
                       "consider swapping them" % (args.target, args.query))

    logger.info("Target: %s, query: %s" % (args.target, args.query))
    finder = SharedKmerFinder(config)
    try:
        stats = finder.run(target, query, output_config)
    except InvariantViolationError as e:
        exit_with_code(SharedKmersExitCode.INTERNAL_ERROR, "Internal error: %s" % str(e))
    except SequenceReadError as e:
        exit_with_code(SharedKmersExitCode.READ_FAILURE, str(e))
    except OSError as e:
        exit_with_code(SharedKmersExitCode.READ_FAILURE, "Failed to read input or write output: %s" % str(e))

    for stat_line in stats:
        logger.info("  " + stat_line)
    if args.stats:
        stats.dump(args.stats)
    logger.info("Finished")


def main(sys_argv):
    args = parse_args(sys_argv)
    set_logger(logger, args.debug)
    config, output_config = check_args(args)
    run_pipeline(args, config, output_config)


def entry():
    try:
        main(sys.argv[1:])
    except SystemExit:
        raise
    except Exception:
        print_exc()
        sys.exit(SharedKmersExitCode.UNCAUGHT_EXCEPTION)


if __name__ == "__main__":
    # stuff only to run when not called via 'import' here
    entry()
