"""Logging setup for the tracker."""

import logging
import sys

# Third-party loggers that are chatty at DEBUG and drown out poll cycles
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai")


def setup_logger(log_level: str = "INFO", name: str = "pr_ci_tracker") -> logging.Logger:
    """
    Set up and configure the application logger.

    Uses a simple, readable format suitable for both the CLI and the
    long-running watch/serve modes. Library modules only call
    ``logging.getLogger(__name__)``; this is called once per entrypoint.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        name: Logger name (default: pr_ci_tracker)

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    return logger
