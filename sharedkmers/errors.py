############################################################################
# Copyright (c) 2024-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################


class SharedKmersError(Exception):
    """Base class for all errors raised by sharedkmers."""


class InvalidParameterError(SharedKmersError, ValueError):
    """Invalid run configuration, detected before any input is scanned."""


class InvalidKmerSizeError(InvalidParameterError):
    """k-mer size outside of the supported [1, 32] range."""


class InvalidOutputOptionError(InvalidParameterError):
    """Unknown output type or compression level out of range."""


class InputFormatError(SharedKmersError):
    """Input file is not in a supported sequence format."""


class InvariantViolationError(SharedKmersError, RuntimeError):
    """Internal consistency check failed between matching phases."""


class SequenceReadError(SharedKmersError):
    """Input could not be read, decompressed or parsed."""
