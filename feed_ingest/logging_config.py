"""Logging setup for feed_ingest.

Logs go to stderr because stdout carries the STDIO transport.
"""

import logging
import sys

from feed_ingest.config import ServerConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("feed_ingest")


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the package logger from the server config.

    Safe to call more than once; existing handlers are replaced.
    """
    logger.setLevel(config.log_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
