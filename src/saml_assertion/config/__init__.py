"""Config module.

This module provides configuration management functionality.
"""

from saml_assertion.config.manager import (
    assertion_options_from_config,
    get_key_password,
    load_config,
)
from saml_assertion.config.schema import (
    AssertionDefaultsConfig,
    Config,
    EncryptionConfig,
    LoggingConfig,
    SigningConfig,
)

__all__ = [
    # Main configuration loading
    "load_config",
    # Helper functions
    "assertion_options_from_config",
    "get_key_password",
    # Configuration models
    "Config",
    "SigningConfig",
    "AssertionDefaultsConfig",
    "EncryptionConfig",
    "LoggingConfig",
]
