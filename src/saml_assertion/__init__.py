"""SAML 2.0 assertion builder.

Builds signed, and optionally encrypted, SAML 2.0 assertions for identity
provider backends.

Example:
    >>> from saml_assertion import create_assertion
    >>> xml = create_assertion({"key": key_pem, "cert": cert_pem, "issuer": "urn:idp"})
"""

__version__ = "0.1.0"

from saml_assertion.saml.assertion import create, create_assertion  # noqa: E402

__all__ = ["__version__", "create", "create_assertion"]
