"""Logging setup for the gateway process.

The ``gateway`` package logger and uvicorn's loggers share one level, taken
from ``GatewayConfig.log_level``, so request lines and gateway diagnostics
read as a single stream.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
PACKAGE_LOGGER = "gateway"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install the root handler (first call only) and align logger levels.

    Returns:
        The ``gateway`` package logger
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for name in UVICORN_LOGGERS:
        logging.getLogger(name).setLevel(level)

    package_logger.debug("Logging configured at %s", level)
    return package_logger
