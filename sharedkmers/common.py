############################################################################
# Copyright (c) 2023-2026 University of Helsinki
# # All Rights Reserved
# See file LICENSE for details.
############################################################################

import logging
import sys

LOGGER_NAME = 'SharedKmers'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def set_logger(logger_instance, debug=False):
    output_level = logging.DEBUG if debug else logging.INFO
    logger_instance.setLevel(output_level)
    # records may be written to stdout, log to stderr only
    ch = logging.StreamHandler(sys.stderr)
    ch.set_name("sharedkmers_screen_log")
    ch.setLevel(output_level)
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    if all(ch.get_name() != h.get_name() for h in logger_instance.handlers):
        logger_instance.addHandler(ch)


def _get_log_level():
    return logging.getLogger(LOGGER_NAME).getEffectiveLevel()


def setup_worker_logging(log_level):
    """Logger initialization for spawned worker processes."""
    logger_instance = logging.getLogger(LOGGER_NAME)
    set_logger(logger_instance, debug=log_level <= logging.DEBUG)


def proper_plural_form(name, count):
    return str(count) + " " + name + ("" if count == 1 else "s")
