"""Logging configuration for protoc_ruby.

All output goes to stderr: when running as a protoc plugin, stdout carries
the serialized CodeGeneratorResponse.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "protoc_ruby"
LOG_LEVEL_ENV = "PROTOC_RUBY_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def resolve_level(level: Optional[str] = None) -> int:
    """Turn a level name (or the environment default) into a logging level."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)
    return getattr(logging, level.upper(), logging.WARNING)


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the package logger with a single stderr handler.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR). Falls back to
            the PROTOC_RUBY_LOG_LEVEL environment variable, then WARNING.

    Returns:
        The configured package logger.
    """
    log_level = resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)

    logger.propagate = False
    return logger
