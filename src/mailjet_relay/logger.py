"""Logging utilities for the relay.

Handlers, level and format are configured once by the entry point through
``logging.basicConfig()``; modules only ask for named loggers.

Example:
    Typical usage in a module::

        from mailjet_relay.logger import get_logger

        logger = get_logger("EventStore")
        logger.info("Events file created")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "MailjetRelay") -> logging.Logger:
    """Retrieve a named logger instance.

    Args:
        name: The logger name. Defaults to "MailjetRelay".

    Returns:
        A ``logging.Logger`` bound to the given name.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for the running process.

    Unknown level names fall back to ``INFO``.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )
