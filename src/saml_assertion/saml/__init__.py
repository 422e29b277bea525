"""SAML 2.0 assertion generation, signing, encryption and verification.

This module provides functionality for:
- Building assertions from the bundled skeleton
- Removing redundant namespace declarations
- Signing assertions with XML-DSig (using signxml)
- Encrypting signed assertions with XML-Enc (using python-xmlsec)
- Verifying signatures and decrypting assertions
- Loading certificates in multiple formats (PEM, PKCS12, DER)
"""

from saml_assertion.saml.assertion import create, create_assertion
from saml_assertion.saml.certificate_manager import (
    check_expiration_warning,
    clear_certificate_cache,
    convert_key_to_pem,
    convert_to_pem,
    get_certificate_info,
    load_certificate,
    load_der_certificate,
    load_pem_certificate,
    load_pem_private_key,
    load_pkcs12_certificate,
    pem_to_cert,
)
from saml_assertion.saml.encryptor import (
    EncryptionProvider,
    XmlsecEncryptionProvider,
    decrypt_assertion,
    encrypt_assertion,
)
from saml_assertion.saml.generator import (
    build_assertion_document,
    format_instant,
    generate_uid,
    infer_name_format,
    render_assertion,
)
from saml_assertion.saml.namespaces import sanitize_namespaces
from saml_assertion.saml.options import normalize_options
from saml_assertion.saml.signer import (
    SignxmlSigningProvider,
    SigningProvider,
    build_key_info,
    sign_assertion,
)
from saml_assertion.saml.template_loader import (
    get_assertion_template,
    load_saml_template,
    validate_saml_template,
)
from saml_assertion.saml.verifier import verify_assertion

__all__ = [
    # Pipeline
    "create",
    "create_assertion",
    "normalize_options",
    # Document
    "get_assertion_template",
    "load_saml_template",
    "validate_saml_template",
    "build_assertion_document",
    "render_assertion",
    "format_instant",
    "generate_uid",
    "infer_name_format",
    "sanitize_namespaces",
    # Signing
    "SigningProvider",
    "SignxmlSigningProvider",
    "build_key_info",
    "sign_assertion",
    "verify_assertion",
    # Encryption
    "EncryptionProvider",
    "XmlsecEncryptionProvider",
    "encrypt_assertion",
    "decrypt_assertion",
    # Certificate management
    "load_certificate",
    "load_pem_certificate",
    "load_pem_private_key",
    "load_pkcs12_certificate",
    "load_der_certificate",
    "get_certificate_info",
    "check_expiration_warning",
    "clear_certificate_cache",
    "convert_to_pem",
    "convert_key_to_pem",
    "pem_to_cert",
]
