"""
Logging setup for kiln.

Library modules only ever call ``logging.getLogger(__name__)``; the CLI calls
``setup_logging`` once to attach a Rich handler to the root logger.

Usage:
    from kiln.log import setup_logging

    setup_logging("debug")
"""

import logging

LEVELS = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def setup_logging(level: str = "info") -> None:
    """
    Configure the root logger with a Rich handler.

    Args:
        level: One of ``silent``, ``error``, ``warning``, ``info``, ``debug``
    """
    from rich.logging import RichHandler

    log_level = LEVELS.get(level.lower(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    if not root.handlers:
        handler = RichHandler(
            rich_tracebacks=(log_level == logging.DEBUG),
            show_path=False,
            markup=False,
            show_time=False,
        )
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    else:
        for handler in root.handlers:
            handler.setLevel(log_level)

    # httpx logs every readiness probe at info
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
