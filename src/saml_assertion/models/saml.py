"""Data models for signing, encryption and certificate handling.

This module defines the descriptors consumed by the signature and
encryption orchestrators, the value-or-error result of a generation call,
and the certificate bundle used by the command line.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Union

from cryptography import x509

from .options import AssertionOptions


@dataclass
class CertificateInfo:
    """Certificate information for display and logging.

    Contains extracted metadata from X.509 certificates without
    exposing sensitive key material.

    Attributes:
        subject: Certificate subject Distinguished Name (DN)
        issuer: Certificate issuer Distinguished Name (DN)
        not_before: Certificate validity start date
        not_after: Certificate expiration date
        serial_number: Certificate serial number
        key_size: Public key size in bits (e.g., 2048, 4096)
    """

    subject: str
    issuer: str
    not_before: datetime
    not_after: datetime
    serial_number: int
    key_size: Optional[int]


@dataclass
class CertificateBundle:
    """Loaded certificate with its private key and chain.

    Attributes:
        certificate: X.509 certificate
        private_key: Private key (if available)
        chain: Additional certificates (PKCS12 only)
        info: Extracted certificate information
    """

    certificate: x509.Certificate
    private_key: Optional[Any]
    chain: List[x509.Certificate]
    info: CertificateInfo


@dataclass(frozen=True)
class SignatureDescriptor:
    """Everything the signature orchestrator needs to sign one assertion.

    Attributes:
        key: Signing private key (PEM)
        cert: Signing certificate (PEM)
        signature_algorithm: Short signature algorithm name (``rsa-sha256``)
        digest_algorithm: Short digest algorithm name (``sha256``)
        insertion_xpath: XPath of the node the Signature follows
        namespace_prefix: Prefix for the Signature element ("" for none)
    """

    key: Union[str, bytes]
    cert: Union[str, bytes]
    signature_algorithm: str
    digest_algorithm: str
    insertion_xpath: str
    namespace_prefix: str = ""

    @classmethod
    def from_options(cls, options: AssertionOptions) -> "SignatureDescriptor":
        return cls(
            key=options.key,  # type: ignore[arg-type]
            cert=options.cert,  # type: ignore[arg-type]
            signature_algorithm=options.signature_algorithm,
            digest_algorithm=options.digest_algorithm,
            insertion_xpath=options.xpath_to_node_before_signature,
            namespace_prefix=options.signature_namespace_prefix,
        )


@dataclass(frozen=True)
class EncryptionDescriptor:
    """Recipient key material and algorithms for one encryption.

    Attributes:
        cert: Recipient certificate (PEM)
        public_key: Recipient public key (PEM); preferred over cert when set
        content_algorithm: Symmetric content encryption algorithm URI
        key_algorithm: Key transport algorithm URI
    """

    cert: Union[str, bytes]
    public_key: Optional[Union[str, bytes]]
    content_algorithm: str
    key_algorithm: str

    @classmethod
    def from_options(cls, options: AssertionOptions) -> "EncryptionDescriptor":
        return cls(
            cert=options.encryption_cert,  # type: ignore[arg-type]
            public_key=options.encryption_public_key,
            content_algorithm=options.encryption_algorithm,
            key_algorithm=options.key_encryption_algorithm,
        )


@dataclass(frozen=True)
class AssertionResult:
    """Outcome of one generation call: either the XML or the error.

    Attributes:
        xml: Signed (and possibly encrypted) assertion text on success
        error: The failure on error; xml is None in that case
    """

    xml: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the XML or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.xml  # type: ignore[return-value]
