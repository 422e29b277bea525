"""Logging module.

This module provides logging configuration with key material redaction.
"""

from .formatters import SecretRedactingFormatter
from .logger import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "SecretRedactingFormatter",
]
