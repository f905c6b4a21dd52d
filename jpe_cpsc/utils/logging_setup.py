"""
Logging setup for the command line entry point.

The library modules only create loggers. Handlers, levels and the
in-memory protocol trace are configured here, once, from LoggingConfig.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from jpe_cpsc.config.models import LoggingConfig
from jpe_cpsc.protocol.logger import configure_protocol_logger


LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-transaction TX/RX lines come from these loggers.
PROTOCOL_LOGGER_NAME = "jpe_cpsc.protocol"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logging(config: LoggingConfig) -> None:
    """
    Install console and optional rotating-file handlers on the root logger.

    ``config.protocol_level`` lets the wire traffic be traced at DEBUG
    while the rest of the driver stays at INFO (or the other way round).
    The handlers pass everything; levels are set on the loggers.

    Args:
        config: Logging configuration.
    """
    root = logging.getLogger()
    root.setLevel(config.level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if config.file:
        try:
            file_handler = RotatingFileHandler(
                config.file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            root.info(f"Logging to file: {config.file}")
        except OSError as e:
            root.error(f"Failed to create log file {config.file}: {e}")

    protocol_level = config.protocol_level or config.level
    logging.getLogger(PROTOCOL_LOGGER_NAME).setLevel(protocol_level)

    configure_protocol_logger(config.trace_size, enabled=config.protocol_trace)

    root.info(
        f"Logging initialized at level {config.level} (protocol {protocol_level}, "
        f"trace {'on, ' + str(config.trace_size) + ' frames' if config.protocol_trace else 'off'})"
    )
