"""
Logging for the ledger copilot.

Package loggers hang off the ``ledger_copilot`` logger, which owns the one
stdout handler.  Client libraries that log every HTTP round-trip (LLM,
embedding and vector-index calls) are held at WARNING.
"""
from __future__ import annotations

import logging
import sys

from ledger_copilot.core.config import get_settings

_PACKAGE = "ledger_copilot"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_QUIET = ("httpx", "httpcore", "openai", "anthropic", "pinecone", "snowflake.connector", "urllib3")


def _attach_handler(logger: logging.Logger) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    package = logging.getLogger(_PACKAGE)
    if not package.handlers:
        _attach_handler(package)
        for noisy in _QUIET:
            logging.getLogger(noisy).setLevel(logging.WARNING)
    package.setLevel(level)

    logger = logging.getLogger(name)
    if name != _PACKAGE and not name.startswith(_PACKAGE + ".") and not logger.handlers:
        # scripts outside the package get their own handler
        _attach_handler(logger)
        logger.setLevel(level)
    return logger
