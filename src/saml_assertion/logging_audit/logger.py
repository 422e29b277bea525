"""Logging configuration and logger factory for the SAML assertion builder.

This module provides centralized logging configuration with support for:
- Console and file handlers with different log levels
- Log rotation to prevent unbounded file growth
- Key material redaction via a custom formatter
- Environment variable configuration
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .formatters import SecretRedactingFormatter

# Constants
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = Path("logs") / "saml-assertion.log"
LOG_FILE_ENV_VAR = "SAML_ASSERTION_LOG_FILE"
MAX_LOG_FILE_SIZE = 10 * 1024 * 1024  # 10MB
BACKUP_COUNT = 5

_logging_configured = False

logger = logging.getLogger(__name__)


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    redact_secrets: bool = True,
) -> None:
    """Configure logging for the SAML assertion builder.

    Installs a console handler at ``level`` and a rotating file handler at
    DEBUG. Calling it again replaces the handlers installed earlier.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path. Defaults to ``$SAML_ASSERTION_LOG_FILE``
                  or ``logs/saml-assertion.log``
        redact_secrets: Mask private keys and passwords in log output

    Raises:
        ValueError: If an invalid log level is provided
        RuntimeError: If the log directory cannot be created

    Example:
        >>> configure_logging(level="DEBUG")
        >>> configure_logging(level="INFO", log_file=Path("custom/app.log"))
    """
    global _logging_configured

    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(
            f"Invalid log level: {level}. "
            f"Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )

    if log_file is None:
        env_log_file = os.environ.get(LOG_FILE_ENV_VAR)
        log_file = Path(env_log_file) if env_log_file else DEFAULT_LOG_FILE

    log_dir = log_file.parent
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RuntimeError(
            f"Failed to create log directory: {log_dir}. "
            f"Ensure write permissions are available. Error: {e}"
        ) from e

    root_logger = logging.getLogger()
    if _logging_configured:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(
        SecretRedactingFormatter(fmt=DEFAULT_LOG_FORMAT, redact_secrets=redact_secrets)
    )
    root_logger.addHandler(console_handler)

    try:
        file_handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=MAX_LOG_FILE_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        root_logger.warning(
            f"Failed to create file handler for {log_file}: {e}. "
            f"Logging to console only."
        )
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            SecretRedactingFormatter(fmt=DEFAULT_LOG_FORMAT, redact_secrets=redact_secrets)
        )
        root_logger.addHandler(file_handler)

    _logging_configured = True
    logger.debug(f"Logging configured: level={level.upper()}, file={log_file}")


def get_logger(module_name: str) -> logging.Logger:
    """Get a logger for the specified module, typically ``__name__``."""
    return logging.getLogger(module_name)
