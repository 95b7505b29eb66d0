"""
logging_config.py — Centralized Logging Configuration for the Order Service

Every module logs through the root configuration set up here, so checkout
attempts, store calls and notification publishing end up in one stream that
operators can grep when reconciling stock or coupon counters by hand.

Features:
    • Combined console and file logging output
    • Process ID tagging for multi-worker deployments
    • Reduced verbosity for external dependencies (pika, httpx)
"""

import logging
import os
import sys

LOG_FILE = os.environ.get("LOG_FILE", "order_processing.log")
LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'


def setup_logging(log_file: str = LOG_FILE):
    """
    Configures the global logging system for the application.

    The configuration includes:
        - Log level: INFO
        - Output destinations:
            1. File: `log_file` (persistent log, skipped when empty)
            2. Console (stdout), container friendly
        - pika and httpx reduced to WARNING

    Calling it again is a no-op once the root logger has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=handlers)

    logging.getLogger("pika").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name):
    """
    Returns a logger for a given module or component name.

    Args:
        name (str): The logger name, typically the module's __name__.

    Returns:
        logging.Logger: A logger that follows the global format and handlers.
    """
    return logging.getLogger(name)
