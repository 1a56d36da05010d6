"""
atproof/log.py

The library logs through loguru but stays silent until an application opts
in. The CLI calls configure_logging().
"""

import sys

from loguru import logger

_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <7}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(verbose: bool = False, sink=sys.stderr) -> None:
    """Route atproof logs to sink. WARNING by default, DEBUG when verbose."""
    logger.remove()
    logger.add(sink, level="DEBUG" if verbose else "WARNING", format=_FORMAT)
    logger.enable("atproof")
