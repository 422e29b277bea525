"""Custom log formatters for the SAML assertion builder.

This module provides a formatter that keeps key material out of log files.
"""

import logging
import re
from typing import List, Optional, Tuple


class SecretRedactingFormatter(logging.Formatter):
    """Formatter that masks private keys and passwords in log messages.

    Signing and decryption keys travel through option mappings, so a debug
    message that echoes options could otherwise write a PEM private key to
    disk.

    Attributes:
        redact_secrets: Whether to enable redaction
        patterns: List of (regex_pattern, replacement_text) tuples

    Example:
        >>> formatter = SecretRedactingFormatter(redact_secrets=True)
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
    """

    def __init__(
        self,
        fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt: Optional[str] = None,
        redact_secrets: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.redact_secrets = redact_secrets

        self.patterns: List[Tuple[re.Pattern[str], str]] = [
            # PEM private key blocks: RSA, EC, PKCS#8 and encrypted PKCS#8
            (
                re.compile(
                    r"-----BEGIN ((?:[A-Z]+ )*PRIVATE KEY)-----.*?-----END \1-----",
                    re.DOTALL,
                ),
                "[PRIVATE-KEY-REDACTED]",
            ),
            # password=..., passphrase: ...
            (
                re.compile(r"(password|passphrase)(['\"]?\s*[=:]\s*)(['\"]?)[^\s,'\"}]+", re.IGNORECASE),
                r"\1\2\3[REDACTED]",
            ),
        ]

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record, masking secrets if enabled."""
        original = super().format(record)

        if self.redact_secrets:
            for pattern, replacement in self.patterns:
                original = pattern.sub(replacement, original)

        return original
