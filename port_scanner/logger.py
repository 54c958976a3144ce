import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "port_scanner"


def create_logger(verbose: bool = False, stream: Optional[TextIO] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream = stream if stream is not None else sys.stderr

    # Prevent duplicate handlers if main() runs more than once;
    # just point the existing one at the current stream
    if logger.handlers:
        for h in logger.handlers:
            if isinstance(h, logging.StreamHandler):
                h.setStream(stream)
        return logger

    sh = logging.StreamHandler(stream)

    # Diagnostics only; scan lines are written by the reporter
    sh.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(sh)
    return logger
