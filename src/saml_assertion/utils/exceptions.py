"""Custom exception classes for the SAML assertion builder.

All exceptions inherit from SAMLAssertionError to allow catching all custom exceptions.
"""


class SAMLAssertionError(Exception):
    """Base exception for all SAML assertion builder custom exceptions."""

    pass


class ConfigurationError(SAMLAssertionError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Missing signing key or certificate
        - Invalid configuration file format
        - Option value of the wrong type
    """

    pass


class MissingCredentialError(ConfigurationError):
    """Raised when no signing private key was supplied."""

    pass


class MissingCertificateError(ConfigurationError):
    """Raised when no signing certificate was supplied."""

    pass


class OptionsValidationError(ConfigurationError):
    """Raised when assertion options fail schema validation.

    Examples:
        - Negative lifetimeInSeconds
        - Mapping attribute value without asXmlMap
        - Non-string audience
    """

    pass


class TemplateError(SAMLAssertionError):
    """Base exception for assertion template processing errors."""

    pass


class TemplateLoadError(TemplateError):
    """Raised when the assertion template cannot be loaded.

    Examples:
        - File not found
        - Permission denied
        - Encoding errors
    """

    pass


class ParseFailureError(TemplateError):
    """Raised when the skeleton or a mutated document fails to parse or serialize.

    Examples:
        - Unclosed tags
        - Invalid characters
        - Required skeleton element missing
    """

    pass


class SignatureComputationError(SAMLAssertionError):
    """Raised when the assertion cannot be signed.

    Examples:
        - Malformed assertion XML
        - Unsupported signature or digest algorithm identifier
        - Signature anchor node not found
        - Invalid private key
    """

    pass


class EncryptionError(SAMLAssertionError):
    """Raised when the signed assertion cannot be encrypted or decrypted.

    Examples:
        - Unsupported content or key-transport algorithm
        - Invalid recipient certificate
        - Wrong private key for decryption
    """

    pass


class SignatureVerificationError(SAMLAssertionError):
    """Raised when a signed assertion fails verification.

    Examples:
        - Assertion modified after signing
        - Signed with a different certificate
        - No Signature element present
    """

    pass


class CertificateLoadError(SAMLAssertionError):
    """Raised when certificate or key loading fails.

    Examples:
        - Certificate file not found
        - Invalid certificate format
        - Incorrect password for encrypted key
    """

    pass
