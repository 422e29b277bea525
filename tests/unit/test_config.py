"""Unit tests for configuration management.

Tests cover configuration loading, validation, environment variable overrides,
and translation into assertion options.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from saml_assertion.config import (
    Config,
    EncryptionConfig,
    LoggingConfig,
    SigningConfig,
    assertion_options_from_config,
    get_key_password,
    load_config,
)
from saml_assertion.config.defaults import DEFAULT_CONFIG
from saml_assertion.saml.options import normalize_options
from saml_assertion.utils.exceptions import ConfigurationError

XENC = "http://www.w3.org/2001/04/xmlenc#"

ENV_VARS = [
    "SAML_ASSERTION_CERT_PATH",
    "SAML_ASSERTION_KEY_PATH",
    "SAML_ASSERTION_SIGNATURE_ALGORITHM",
    "SAML_ASSERTION_DIGEST_ALGORITHM",
    "SAML_ASSERTION_ISSUER",
    "SAML_ASSERTION_LIFETIME",
    "SAML_ASSERTION_AUDIENCES",
    "SAML_ASSERTION_ENCRYPTION_CERT_PATH",
    "SAML_ASSERTION_ENCRYPTION_ALGORITHM",
    "SAML_ASSERTION_KEY_ENCRYPTION_ALGORITHM",
    "SAML_ASSERTION_LOG_LEVEL",
    "SAML_ASSERTION_LOG_FILE",
    "SAML_ASSERTION_REDACT_SECRETS",
    "SAML_ASSERTION_KEY_PASSWORD",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and working directory."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _write_config(tmp_path: Path, data) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestConfigurationSchema:
    """Test pydantic configuration models validation."""

    def test_defaults(self) -> None:
        """Test the empty configuration uses documented defaults."""
        config = Config()

        assert config.signing.signature_algorithm == "rsa-sha256"
        assert config.signing.digest_algorithm == "sha256"
        assert config.assertion.lifetime_in_seconds == 300
        assert config.encryption.cert_path is None
        assert config.logging.redact_secrets is True

    def test_defaults_dict_matches_model(self) -> None:
        """Test DEFAULT_CONFIG validates to the model defaults."""
        assert Config(**DEFAULT_CONFIG) == Config()

    def test_algorithm_names_lowercased(self) -> None:
        """Test algorithm names are case-insensitive."""
        signing = SigningConfig(signature_algorithm="RSA-SHA1", digest_algorithm="SHA1")

        assert signing.signature_algorithm == "rsa-sha1"
        assert signing.digest_algorithm == "sha1"

    def test_invalid_signature_algorithm(self) -> None:
        """Test unsupported signature algorithms are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            SigningConfig(signature_algorithm="rsa-md5")

        assert "Invalid signature_algorithm" in str(exc_info.value)

    def test_encryption_short_names_expanded(self) -> None:
        """Test short encryption algorithm names expand to URIs."""
        encryption = EncryptionConfig(encryption_algorithm="aes128-cbc", key_encryption_algorithm="rsa-1_5")

        assert encryption.encryption_algorithm == f"{XENC}aes128-cbc"
        assert encryption.key_encryption_algorithm == f"{XENC}rsa-1_5"

    def test_invalid_encryption_algorithm(self) -> None:
        """Test unsupported content algorithms are rejected."""
        with pytest.raises(ValidationError):
            EncryptionConfig(encryption_algorithm="aes512-cbc")

    def test_negative_lifetime(self) -> None:
        """Test negative lifetimes are rejected."""
        with pytest.raises(ValidationError):
            Config(assertion={"lifetime_in_seconds": -1})

    def test_excessive_lifetime(self) -> None:
        """Test lifetimes beyond the supported window are rejected."""
        with pytest.raises(ValidationError):
            Config(assertion={"lifetime_in_seconds": 10**12})

    def test_log_level_uppercased(self) -> None:
        """Test log levels are normalized."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="VERBOSE")


class TestLoadConfig:
    """Test configuration file loading."""

    def test_missing_file_uses_defaults(self, tmp_path) -> None:
        """Test a missing config file falls back to defaults."""
        config = load_config(tmp_path / "missing.json")

        assert config == Config()

    def test_load_file(self, tmp_path) -> None:
        """Test values are read from the JSON file."""
        path = _write_config(tmp_path, {
            "signing": {"cert_path": "certs/idp.pem", "signature_namespace_prefix": "ds"},
            "assertion": {"issuer": "urn:idp", "audiences": ["urn:sp"], "lifetime_in_seconds": 60},
        })

        config = load_config(path)

        assert config.signing.cert_path == Path("certs/idp.pem")
        assert config.signing.signature_namespace_prefix == "ds"
        assert config.assertion.issuer == "urn:idp"
        assert config.assertion.audiences == ["urn:sp"]
        assert config.assertion.lifetime_in_seconds == 60

    def test_malformed_json(self, tmp_path) -> None:
        """Test malformed JSON is reported with its position."""
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "Invalid JSON" in str(exc_info.value)

    def test_non_object_json(self, tmp_path) -> None:
        """Test a top-level JSON array is rejected."""
        path = _write_config(tmp_path, ["not", "an", "object"])

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_validation_failure(self, tmp_path) -> None:
        """Test schema violations become ConfigurationError."""
        path = _write_config(tmp_path, {"logging": {"level": "LOUD"}})

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "Configuration validation failed" in str(exc_info.value)

    def test_password_in_file_warns(self, tmp_path, caplog) -> None:
        """Test a password in the config file is flagged."""
        path = _write_config(tmp_path, {"signing": {"key_password": "secret"}})

        load_config(path)

        assert "Private key password found in configuration file" in caplog.text


class TestEnvironmentOverrides:
    """Test SAML_ASSERTION_* environment overrides."""

    def test_overrides_file_values(self, tmp_path, monkeypatch) -> None:
        """Test environment variables take precedence over the file."""
        path = _write_config(tmp_path, {"assertion": {"issuer": "urn:file"}})
        monkeypatch.setenv("SAML_ASSERTION_ISSUER", "urn:env")
        monkeypatch.setenv("SAML_ASSERTION_LIFETIME", "120")
        monkeypatch.setenv("SAML_ASSERTION_AUDIENCES", "urn:a, urn:b,")
        monkeypatch.setenv("SAML_ASSERTION_SIGNATURE_ALGORITHM", "rsa-sha1")
        monkeypatch.setenv("SAML_ASSERTION_LOG_LEVEL", "warning")
        monkeypatch.setenv("SAML_ASSERTION_REDACT_SECRETS", "false")

        config = load_config(path)

        assert config.assertion.issuer == "urn:env"
        assert config.assertion.lifetime_in_seconds == 120
        assert config.assertion.audiences == ["urn:a", "urn:b"]
        assert config.signing.signature_algorithm == "rsa-sha1"
        assert config.logging.level == "WARNING"
        assert config.logging.redact_secrets is False

    def test_path_overrides(self, tmp_path, monkeypatch) -> None:
        """Test certificate path overrides."""
        monkeypatch.setenv("SAML_ASSERTION_CERT_PATH", "a.pem")
        monkeypatch.setenv("SAML_ASSERTION_KEY_PATH", "a.key")
        monkeypatch.setenv("SAML_ASSERTION_ENCRYPTION_CERT_PATH", "sp.pem")
        monkeypatch.setenv("SAML_ASSERTION_ENCRYPTION_ALGORITHM", "aes128-cbc")

        config = load_config(tmp_path / "missing.json")

        assert config.signing.cert_path == Path("a.pem")
        assert config.signing.key_path == Path("a.key")
        assert config.encryption.cert_path == Path("sp.pem")
        assert config.encryption.encryption_algorithm == f"{XENC}aes128-cbc"

    def test_invalid_lifetime(self, tmp_path, monkeypatch) -> None:
        """Test a non-numeric lifetime is rejected."""
        monkeypatch.setenv("SAML_ASSERTION_LIFETIME", "five minutes")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path / "missing.json")

        assert "SAML_ASSERTION_LIFETIME" in str(exc_info.value)


class TestHelpers:
    """Test configuration helpers."""

    def test_key_password_from_env(self, monkeypatch) -> None:
        """Test the key password is read from the configured variable."""
        monkeypatch.setenv("SAML_ASSERTION_KEY_PASSWORD", "secret")

        assert get_key_password(Config()) == b"secret"

    def test_key_password_unset(self) -> None:
        """Test no password when the variable is unset."""
        assert get_key_password(Config()) is None

    def test_key_password_disabled(self, monkeypatch) -> None:
        """Test no password when no variable is configured."""
        monkeypatch.setenv("SAML_ASSERTION_KEY_PASSWORD", "secret")

        assert get_key_password(Config(signing={"key_password_env_var": None})) is None

    def test_assertion_options(self) -> None:
        """Test configured defaults translate into valid assertion options."""
        config = Config(
            signing={"signature_namespace_prefix": "ds"},
            assertion={"issuer": "urn:idp", "audiences": ["urn:sp"]},
        )

        options = normalize_options(assertion_options_from_config(config), key="KEY", cert="CERT")

        assert options.issuer == "urn:idp"
        assert options.audiences == ("urn:sp",)
        assert options.lifetime_in_seconds == 300
        assert options.signature_namespace_prefix == "ds"
        assert options.encryption_enabled is False
