"""Utilities module.

This module provides the exception hierarchy shared by all packages.
"""

from saml_assertion.utils.exceptions import (
    CertificateLoadError,
    ConfigurationError,
    EncryptionError,
    MissingCertificateError,
    MissingCredentialError,
    OptionsValidationError,
    ParseFailureError,
    SAMLAssertionError,
    SignatureComputationError,
    SignatureVerificationError,
    TemplateError,
    TemplateLoadError,
)

__all__ = [
    "SAMLAssertionError",
    "ConfigurationError",
    "MissingCredentialError",
    "MissingCertificateError",
    "OptionsValidationError",
    "TemplateError",
    "TemplateLoadError",
    "ParseFailureError",
    "SignatureComputationError",
    "EncryptionError",
    "SignatureVerificationError",
    "CertificateLoadError",
]
