"""Logging setup shared by the command-line entry points."""
import logging
import sys


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Log to stdout: WARNING by default, INFO with --verbose, DEBUG with --debug."""
    if debug:
        log_level = logging.DEBUG
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbose:
        log_level = logging.INFO
        log_format = "%(asctime)s - %(levelname)s - %(message)s"
    else:
        log_level = logging.WARNING
        log_format = "%(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
