"""Logging configuration for the flowsmith CLI."""

import logging
import os


def configure_logging(verbose: bool) -> None:
    """Configure logging levels based on the verbose flag.

    Call once at CLI startup. Configures the root logger and silences noisy
    third-party libraries.

    Args:
        verbose: If True, show INFO+ logs. If False, show only WARNING+ logs.
    """
    # Tests manage their own logging
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    level = logging.INFO if verbose else logging.WARNING
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    else:
        logging.getLogger().setLevel(level)

    # Silenced even in verbose mode
    for logger_name in ["httpx", "httpcore", "urllib3", "llm", "anthropic", "openai"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    if not verbose:
        logging.getLogger("flowsmith").setLevel(logging.WARNING)
