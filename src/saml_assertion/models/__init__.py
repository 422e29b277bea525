"""Models module.

This module provides the option model and the dataclasses passed between
the assertion pipeline stages.
"""

from saml_assertion.models.options import (
    AssertionOptions,
    AttributeValue,
    BooleanValue,
    NestedValue,
    NumberValue,
    TextValue,
    classify_attribute_value,
)
from saml_assertion.models.saml import (
    AssertionResult,
    CertificateBundle,
    CertificateInfo,
    EncryptionDescriptor,
    SignatureDescriptor,
)

__all__ = [
    "AssertionOptions",
    "AttributeValue",
    "TextValue",
    "BooleanValue",
    "NumberValue",
    "NestedValue",
    "classify_attribute_value",
    "AssertionResult",
    "CertificateBundle",
    "CertificateInfo",
    "EncryptionDescriptor",
    "SignatureDescriptor",
]
