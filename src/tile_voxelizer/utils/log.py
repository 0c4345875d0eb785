"""Logger helpers."""

import logging

LOG_FORMAT = "[%(levelname)s] %(message)s"


def get_logger(name: str = "tile_voxelizer") -> logging.Logger:
    """Get a module logger. Handlers are configured by :func:`configure_logging`."""
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the package logger.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
    """
    logger = logging.getLogger("tile_voxelizer")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level.upper())
