"""Configuration schema models using pydantic.

This module defines the configuration structure and validation rules using pydantic.
All configuration values are validated according to the schema defined here.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.options import (
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_ENCRYPTION_ALGORITHM,
    DEFAULT_KEY_ENCRYPTION_ALGORITHM,
    DEFAULT_SIGNATURE_ALGORITHM,
    MAX_LIFETIME_IN_SECONDS,
)
from ..saml.encryptor import CONTENT_ALGORITHMS, KEY_ALGORITHMS, resolve_algorithm
from ..saml.signer import DIGEST_ALGORITHMS, SIGNATURE_ALGORITHMS


class SigningConfig(BaseModel):
    """Configuration for the signing credentials and algorithms.

    Attributes:
        cert_path: Path to the signing certificate (PEM, DER or PKCS12)
        key_path: Path to the PEM private key (not needed for PKCS12)
        key_password_env_var: Environment variable holding the key password
        signature_algorithm: ``rsa-sha256`` or ``rsa-sha1``
        digest_algorithm: ``sha256`` or ``sha1``
        signature_namespace_prefix: Prefix of the Signature element
    """

    cert_path: Optional[Path] = None
    key_path: Optional[Path] = None
    key_password_env_var: Optional[str] = Field(
        default="SAML_ASSERTION_KEY_PASSWORD",
        description="Environment variable for the private key password",
    )
    signature_algorithm: str = DEFAULT_SIGNATURE_ALGORITHM
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    signature_namespace_prefix: str = ""

    @field_validator("signature_algorithm")
    @classmethod
    def validate_signature_algorithm(cls, v: str) -> str:
        """Validate the signature algorithm name.

        Raises:
            ValueError: If the algorithm is not supported
        """
        v_lower = v.lower()
        if v_lower not in SIGNATURE_ALGORITHMS:
            raise ValueError(
                f"Invalid signature_algorithm: {v}. "
                f"Must be one of: {', '.join(SIGNATURE_ALGORITHMS)}"
            )
        return v_lower

    @field_validator("digest_algorithm")
    @classmethod
    def validate_digest_algorithm(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in DIGEST_ALGORITHMS:
            raise ValueError(
                f"Invalid digest_algorithm: {v}. "
                f"Must be one of: {', '.join(DIGEST_ALGORITHMS)}"
            )
        return v_lower


class AssertionDefaultsConfig(BaseModel):
    """Defaults applied to every generated assertion.

    Attributes:
        issuer: Issuer identifier
        lifetime_in_seconds: Validity window (0 disables the bounds)
        audiences: Audience URIs
        name_identifier_format: NameID Format
        authn_context_class_ref: AuthnContextClassRef text
        include_attribute_name_format: Emit inferred NameFormat on attributes
        typed_attributes: Emit xsi:type on attribute values
    """

    issuer: Optional[str] = None
    lifetime_in_seconds: int = Field(
        default=300,
        ge=0,
        le=MAX_LIFETIME_IN_SECONDS,
        description="Assertion validity in seconds",
    )
    audiences: List[str] = Field(default_factory=list)
    name_identifier_format: Optional[str] = None
    authn_context_class_ref: Optional[str] = None
    include_attribute_name_format: bool = True
    typed_attributes: bool = True


class EncryptionConfig(BaseModel):
    """Configuration for assertion encryption.

    Attributes:
        cert_path: Recipient certificate; encryption is enabled when set
        encryption_algorithm: Content encryption algorithm URI
        key_encryption_algorithm: Key transport algorithm URI
    """

    cert_path: Optional[Path] = None
    encryption_algorithm: str = DEFAULT_ENCRYPTION_ALGORITHM
    key_encryption_algorithm: str = DEFAULT_KEY_ENCRYPTION_ALGORITHM

    @field_validator("encryption_algorithm")
    @classmethod
    def validate_encryption_algorithm(cls, v: str) -> str:
        """Validate and expand the content encryption algorithm.

        Short names such as ``aes128-cbc`` are expanded to their URI.
        """
        uri = resolve_algorithm(v)
        if uri not in CONTENT_ALGORITHMS:
            raise ValueError(
                f"Invalid encryption_algorithm: {v}. "
                f"Must be one of: {', '.join(CONTENT_ALGORITHMS)}"
            )
        return uri

    @field_validator("key_encryption_algorithm")
    @classmethod
    def validate_key_encryption_algorithm(cls, v: str) -> str:
        uri = resolve_algorithm(v)
        if uri not in KEY_ALGORITHMS:
            raise ValueError(
                f"Invalid key_encryption_algorithm: {v}. "
                f"Must be one of: {', '.join(KEY_ALGORITHMS)}"
            )
        return uri


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file
        redact_secrets: Whether to mask key material in logs
    """

    level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Path = Field(
        default=Path("logs/saml-assertion.log"),
        description="Log file path",
    )
    redact_secrets: bool = Field(
        default=True,
        description="Mask private keys and passwords in logs",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level and return it uppercased.

        Raises:
            ValueError: If log level is not valid
        """
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return v_upper


class Config(BaseModel):
    """Root configuration model.

    Attributes:
        signing: Signing credentials and algorithms
        assertion: Defaults for generated assertions
        encryption: Encryption settings
        logging: Logging configuration

    Example:
        >>> config = Config(assertion=AssertionDefaultsConfig(issuer="urn:idp"))
        >>> config.assertion.lifetime_in_seconds
        300
    """

    signing: SigningConfig = SigningConfig()
    assertion: AssertionDefaultsConfig = AssertionDefaultsConfig()
    encryption: EncryptionConfig = EncryptionConfig()
    logging: LoggingConfig = LoggingConfig()
