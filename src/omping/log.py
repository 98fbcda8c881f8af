"""Logging setup driven by the -v count."""

import logging
import sys

# Per-host capability traces, shown with -vv
DEBUG2 = 5
logging.addLevelName(DEBUG2, "DEBUG2")


def verbosity_level(verbose: int) -> int:
    """Map the number of -v flags to a logging level."""
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.DEBUG
    return DEBUG2


def setup_logging(verbose: int = 0, name: str = "omping") -> logging.Logger:
    """
    Configure the package logger to write to stderr.

    Args:
        verbose: Number of -v flags given
        name: Logger to configure

    Returns:
        The configured logger
    """
    level = verbosity_level(verbose)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger
