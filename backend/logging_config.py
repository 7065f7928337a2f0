"""
Centralized logging configuration.

Call `setup_logging()` once at application startup (see main.py).
All modules use: logger = logging.getLogger(__name__)
"""

import logging
import sys


LOG_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai", "chromadb")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a single stdout handler."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Avoid duplicate handlers when the app is reloaded
    if any(getattr(h, "_story_architect", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._story_architect = True
    root.addHandler(handler)
