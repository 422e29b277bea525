"""Configuration manager for loading and managing configuration.

This module provides the main configuration loading functionality, including
support for JSON configuration files, environment variable overrides, and
configuration validation.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from saml_assertion.config.defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH
from saml_assertion.config.schema import Config
from saml_assertion.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable prefix for all configuration overrides
ENV_PREFIX = "SAML_ASSERTION_"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded with the following precedence (highest to lowest):
    1. CLI arguments (handled by caller)
    2. Environment variables (SAML_ASSERTION_* prefix)
    3. Configuration file (JSON)
    4. Default values

    Args:
        config_path: Path to configuration file. If None, uses ./config/config.json

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid or malformed

    Example:
        >>> config = load_config(Path("custom/config.json"))
        >>> issuer = config.assertion.issuer
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_PATH)

    config_dict = _load_config_file(config_path)
    config_dict = _apply_env_overrides(config_dict)
    _check_sensitive_values(config_dict)

    try:
        return Config(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed:\n{e}\n\n"
            f"Fix: Check your configuration file at {config_path} and ensure all "
            f"values match the expected format."
        ) from e


def _load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration file or return defaults.

    Raises:
        ConfigurationError: If JSON is malformed or the file is unreadable
    """
    if not config_path.exists():
        logger.info(f"Config file not found: {config_path}. Using default configuration.")
        # deep copy so callers cannot mutate the defaults
        return json.loads(json.dumps(DEFAULT_CONFIG))

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in config file: {config_path}\n"
            f"Error: {e}\n"
            f"Fix: Check JSON syntax at line {e.lineno}, column {e.colno}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file: {config_path}\n"
            f"Error: {e}\n"
            f"Fix: Check file permissions and path"
        ) from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a JSON object at the top level"
        )
    logger.info(f"Loaded configuration from {config_path}")
    return config_dict


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides with the SAML_ASSERTION_ prefix.

    Environment variables follow the pattern SAML_ASSERTION_<FIELD>, for
    example SAML_ASSERTION_ISSUER or SAML_ASSERTION_LOG_LEVEL.
    ``SAML_ASSERTION_AUDIENCES`` takes a comma-separated list.

    Raises:
        ConfigurationError: If a numeric override is not a number
    """
    # Signing section
    if cert_path := os.getenv(f"{ENV_PREFIX}CERT_PATH"):
        config_dict.setdefault("signing", {})["cert_path"] = cert_path
        logger.debug("Override: signing cert_path from environment")

    if key_path := os.getenv(f"{ENV_PREFIX}KEY_PATH"):
        config_dict.setdefault("signing", {})["key_path"] = key_path
        logger.debug("Override: signing key_path from environment")

    if signature_algorithm := os.getenv(f"{ENV_PREFIX}SIGNATURE_ALGORITHM"):
        config_dict.setdefault("signing", {})["signature_algorithm"] = signature_algorithm
        logger.debug("Override: signature_algorithm from environment")

    if digest_algorithm := os.getenv(f"{ENV_PREFIX}DIGEST_ALGORITHM"):
        config_dict.setdefault("signing", {})["digest_algorithm"] = digest_algorithm
        logger.debug("Override: digest_algorithm from environment")

    # Assertion section
    if issuer := os.getenv(f"{ENV_PREFIX}ISSUER"):
        config_dict.setdefault("assertion", {})["issuer"] = issuer
        logger.debug("Override: issuer from environment")

    if lifetime := os.getenv(f"{ENV_PREFIX}LIFETIME"):
        config_dict.setdefault("assertion", {})["lifetime_in_seconds"] = _parse_int(
            lifetime, f"{ENV_PREFIX}LIFETIME"
        )
        logger.debug("Override: lifetime_in_seconds from environment")

    if audiences := os.getenv(f"{ENV_PREFIX}AUDIENCES"):
        config_dict.setdefault("assertion", {})["audiences"] = [
            audience.strip() for audience in audiences.split(",") if audience.strip()
        ]
        logger.debug("Override: audiences from environment")

    # Encryption section
    if encryption_cert_path := os.getenv(f"{ENV_PREFIX}ENCRYPTION_CERT_PATH"):
        config_dict.setdefault("encryption", {})["cert_path"] = encryption_cert_path
        logger.debug("Override: encryption cert_path from environment")

    if encryption_algorithm := os.getenv(f"{ENV_PREFIX}ENCRYPTION_ALGORITHM"):
        config_dict.setdefault("encryption", {})["encryption_algorithm"] = encryption_algorithm
        logger.debug("Override: encryption_algorithm from environment")

    if key_encryption_algorithm := os.getenv(f"{ENV_PREFIX}KEY_ENCRYPTION_ALGORITHM"):
        config_dict.setdefault("encryption", {})["key_encryption_algorithm"] = (
            key_encryption_algorithm
        )
        logger.debug("Override: key_encryption_algorithm from environment")

    # Logging section
    if log_level := os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
        config_dict.setdefault("logging", {})["level"] = log_level
        logger.debug("Override: log_level from environment")

    if log_file := os.getenv(f"{ENV_PREFIX}LOG_FILE"):
        config_dict.setdefault("logging", {})["log_file"] = log_file
        logger.debug("Override: log_file from environment")

    if redact_secrets := os.getenv(f"{ENV_PREFIX}REDACT_SECRETS"):
        config_dict.setdefault("logging", {})["redact_secrets"] = _parse_bool(redact_secrets)
        logger.debug("Override: redact_secrets from environment")

    return config_dict


def _parse_bool(value: str) -> bool:
    """Parse a case-insensitive boolean string."""
    return value.lower() in ("true", "1", "yes", "on")


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got: {value!r}") from e


def _check_sensitive_values(config_dict: dict[str, Any]) -> None:
    """Warn if a key password was written into the configuration file.

    Passwords belong in environment variables, not configuration files.
    """
    signing = config_dict.get("signing") or {}
    if "key_password" in signing:
        logger.warning(
            "WARNING: Private key password found in configuration file! "
            "Passwords should be stored in environment variables, not config files. "
            f"Use {ENV_PREFIX}KEY_PASSWORD environment variable instead."
        )


def get_key_password(config: Config) -> Optional[bytes]:
    """Read the signing key password from the configured environment variable.

    Example:
        >>> password = get_key_password(load_config())
    """
    env_var = config.signing.key_password_env_var
    if not env_var:
        return None
    password = os.getenv(env_var)
    return password.encode("utf-8") if password else None


def assertion_options_from_config(config: Config) -> dict[str, Any]:
    """Translate configured defaults into assertion options.

    Credentials are not included; the caller loads them from
    ``config.signing`` and ``config.encryption``.

    Returns:
        Options mapping using the camelCase option names

    Example:
        >>> options = assertion_options_from_config(load_config())
        >>> options["lifetimeInSeconds"]
        300
    """
    return {
        "signatureAlgorithm": config.signing.signature_algorithm,
        "digestAlgorithm": config.signing.digest_algorithm,
        "signatureNamespacePrefix": config.signing.signature_namespace_prefix,
        "issuer": config.assertion.issuer,
        "lifetimeInSeconds": config.assertion.lifetime_in_seconds,
        "audiences": list(config.assertion.audiences),
        "nameIdentifierFormat": config.assertion.name_identifier_format,
        "authnContextClassRef": config.assertion.authn_context_class_ref,
        "includeAttributeNameFormat": config.assertion.include_attribute_name_format,
        "typedAttributes": config.assertion.typed_attributes,
        "encryptionAlgorithm": config.encryption.encryption_algorithm,
        "keyEncryptionAlgorithm": config.encryption.key_encryption_algorithm,
    }
