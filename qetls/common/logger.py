"""
Logging setup for the command-line surface.

Library modules only call `logging.getLogger(__name__)`; handlers are
installed here, once, by the CLI. Output format:

    [TLS] message            (INFO)
    [TLS][DEBUG] message     (DEBUG, only with --verbose)
    [TLS][ERROR] message     (WARNING and above, on stderr)
"""

import logging
import sys

ROOT_LOGGER_NAME = "qetls"


class PrefixFormatter(logging.Formatter):
    """Prefix each record with `[<prefix>]` plus a level tag for non-INFO records."""

    def __init__(self, prefix: str):
        super().__init__("%(message)s")
        self.prefix = prefix

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno == logging.INFO:
            return f"[{self.prefix}] {message}"
        if record.levelno < logging.INFO:
            return f"[{self.prefix}][DEBUG] {message}"
        return f"[{self.prefix}][ERROR] {message}"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def setup_logging(verbose: bool = False, prefix: str = "TLS") -> logging.Logger:
    """
    Configure the `qetls` logger hierarchy.

    DEBUG/INFO records go to stdout, WARNING and above to stderr.
    Calling this again replaces the handlers instead of stacking them.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = PrefixFormatter(prefix)

    out_handler = logging.StreamHandler(sys.stdout)
    out_handler.setFormatter(formatter)
    out_handler.addFilter(_MaxLevelFilter(logging.WARNING))
    logger.addHandler(out_handler)

    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setLevel(logging.WARNING)
    err_handler.setFormatter(formatter)
    logger.addHandler(err_handler)

    return logger

