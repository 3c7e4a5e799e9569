############################################################################
# Copyright (c) 2024-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

import logging
import sys
from enum import IntEnum


class SharedKmersExitCode(IntEnum):
    """Exit codes for find_shared_kmers."""

    # Success
    SUCCESS = 0

    # Input/Output Errors (1-19)
    INPUT_FILE_NOT_FOUND = 1
    INVALID_FILE_FORMAT = 9

    # Configuration Errors (20-29)
    INVALID_PARAMETER = 20
    INCOMPATIBLE_OPTIONS = 22

    # Runtime Errors (30-99)
    READ_FAILURE = 30
    INTERNAL_ERROR = 98
    UNCAUGHT_EXCEPTION = 99


def exit_with_code(code: SharedKmersExitCode, message: str = None):
    """
    Exit with a specific error code and optional message.

    Parameters
    ----------
    code : SharedKmersExitCode
        The exit code to use
    message : str, optional
        Additional error message to log
    """
    if message:
        logger = logging.getLogger('SharedKmers')
        if code == SharedKmersExitCode.SUCCESS:
            logger.info(message)
        else:
            logger.critical(message)
    sys.exit(code)
