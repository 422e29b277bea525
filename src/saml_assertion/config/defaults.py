"""Default configuration values.

This module defines the default configuration values used when no configuration
file is provided or when configuration values are not specified.
"""

from typing import Any

from ..models.options import (
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_ENCRYPTION_ALGORITHM,
    DEFAULT_KEY_ENCRYPTION_ALGORITHM,
    DEFAULT_SIGNATURE_ALGORITHM,
)

# Used as a fallback when no configuration file is present
DEFAULT_CONFIG: dict[str, Any] = {
    "signing": {
        # No default credentials - must be provided by user
        "cert_path": None,
        "key_path": None,
        "key_password_env_var": "SAML_ASSERTION_KEY_PASSWORD",
        "signature_algorithm": DEFAULT_SIGNATURE_ALGORITHM,
        "digest_algorithm": DEFAULT_DIGEST_ALGORITHM,
        "signature_namespace_prefix": "",
    },
    "assertion": {
        "issuer": None,
        # Five minute validity window
        "lifetime_in_seconds": 300,
        "audiences": [],
        "name_identifier_format": None,
        "authn_context_class_ref": None,
        "include_attribute_name_format": True,
        "typed_attributes": True,
    },
    "encryption": {
        # Encryption is off until a recipient certificate is configured
        "cert_path": None,
        "encryption_algorithm": DEFAULT_ENCRYPTION_ALGORITHM,
        "key_encryption_algorithm": DEFAULT_KEY_ENCRYPTION_ALGORITHM,
    },
    "logging": {
        "level": "INFO",
        "log_file": "logs/saml-assertion.log",
        # Key material is masked unless the user opts out
        "redact_secrets": True,
    },
}

# Default configuration file path
DEFAULT_CONFIG_PATH = "config/config.json"
