"""XML signing module using signxml library.

This module signs serialized assertions with an enveloped XML Signature.
The signature references the ``Assertion`` element by its ``ID``, applies
the enveloped-signature and exclusive C14N transforms, and embeds the
signing certificate in ``KeyInfo``. The cryptography itself is delegated
to a ``SigningProvider``; the default provider wraps ``signxml.XMLSigner``.
"""

import logging
from typing import Dict, Optional, Protocol, Union

from lxml import etree
from signxml import CanonicalizationMethod, DigestAlgorithm, SignatureMethod, XMLSigner
from signxml.exceptions import InvalidCertificate, InvalidInput

from ..models.saml import SignatureDescriptor
from ..utils.exceptions import SignatureComputationError
from .certificate_manager import pem_to_cert
from .namespaces import sanitize_namespaces

logger = logging.getLogger(__name__)

# XML Signature namespace
DS_NS = "http://www.w3.org/2000/09/xmldsig#"

ASSERTION_XPATH = "//*[local-name(.)='Assertion']"

# Short algorithm names accepted in options
SIGNATURE_ALGORITHMS: Dict[str, SignatureMethod] = {
    "rsa-sha256": SignatureMethod.RSA_SHA256,
    "rsa-sha1": SignatureMethod.RSA_SHA1,
}

DIGEST_ALGORITHMS: Dict[str, DigestAlgorithm] = {
    "sha256": DigestAlgorithm.SHA256,
    "sha1": DigestAlgorithm.SHA1,
}

# Algorithms signxml refuses unless deprecation checks are disabled
_DEPRECATED_ALGORITHMS = {"rsa-sha1", "sha1"}


class SigningProvider(Protocol):
    """Computes an enveloped signature over a prepared assertion tree."""

    def sign(
        self,
        root: etree._Element,
        descriptor: SignatureDescriptor,
        key_info: etree._Element,
    ) -> etree._Element:
        """Sign ``root`` and return the signed tree.

        The tree already holds a ``Signature`` placeholder (``Id="placeholder"``)
        at the position the signature must take.
        """
        ...


class _LegacyXMLSigner(XMLSigner):
    """XMLSigner that accepts SHA-1 signature and digest methods."""

    def check_deprecated_methods(self):
        pass


class SignxmlSigningProvider:
    """SigningProvider backed by ``signxml.XMLSigner``."""

    def sign(
        self,
        root: etree._Element,
        descriptor: SignatureDescriptor,
        key_info: etree._Element,
    ) -> etree._Element:
        signer_class = XMLSigner
        if {descriptor.signature_algorithm, descriptor.digest_algorithm} & _DEPRECATED_ALGORITHMS:
            signer_class = _LegacyXMLSigner

        signer = signer_class(
            signature_algorithm=SIGNATURE_ALGORITHMS[descriptor.signature_algorithm],
            digest_algorithm=DIGEST_ALGORITHMS[descriptor.digest_algorithm],
            c14n_algorithm=CanonicalizationMethod.EXCLUSIVE_XML_CANONICALIZATION_1_0,
        )
        signer.namespaces = {descriptor.namespace_prefix or None: DS_NS}

        return signer.sign(
            root,
            key=descriptor.key,
            reference_uri=root.get("ID"),
            key_info=key_info,
        )


def build_key_info(cert: Union[str, bytes], prefix: str = "") -> etree._Element:
    """Build the ``KeyInfo`` element embedding the signing certificate.

    Args:
        cert: Signing certificate in PEM format
        prefix: Namespace prefix of the signature ("" for the default namespace)

    Returns:
        ``KeyInfo/X509Data/X509Certificate`` element tree

    Example:
        >>> key_info = build_key_info(cert_pem, prefix="ds")
        >>> etree.QName(key_info).localname
        'KeyInfo'
    """
    nsmap = {prefix or None: DS_NS}
    key_info = etree.Element(f"{{{DS_NS}}}KeyInfo", nsmap=nsmap)
    x509_data = etree.SubElement(key_info, f"{{{DS_NS}}}X509Data")
    etree.SubElement(x509_data, f"{{{DS_NS}}}X509Certificate").text = pem_to_cert(cert)
    return key_info


def sign_assertion(
    xml: str,
    descriptor: SignatureDescriptor,
    provider: Optional[SigningProvider] = None,
) -> str:
    """Sign a serialized assertion with an enveloped XML Signature.

    The signature is inserted immediately after the node selected by
    ``descriptor.insertion_xpath`` (the ``Issuer`` by default) and the
    signed output is sanitized again, since signing re-serializes the
    signature subtree with its own namespace declarations.

    Args:
        xml: Unsigned, sanitized assertion XML
        descriptor: Key material, algorithms and placement
        provider: Signature provider (defaults to SignxmlSigningProvider)

    Returns:
        Signed assertion XML

    Raises:
        SignatureComputationError: If the XML is malformed, an algorithm is
            unknown, the anchor node is missing, or the provider fails

    Example:
        >>> descriptor = SignatureDescriptor.from_options(options)
        >>> signed = sign_assertion(unsigned_xml, descriptor)
        >>> assert "SignatureValue" in signed
    """
    if descriptor.signature_algorithm not in SIGNATURE_ALGORITHMS:
        raise SignatureComputationError(
            f"Unsupported signature algorithm: {descriptor.signature_algorithm}. "
            f"Supported algorithms: {', '.join(SIGNATURE_ALGORITHMS)}"
        )
    if descriptor.digest_algorithm not in DIGEST_ALGORITHMS:
        raise SignatureComputationError(
            f"Unsupported digest algorithm: {descriptor.digest_algorithm}. "
            f"Supported algorithms: {', '.join(DIGEST_ALGORITHMS)}"
        )

    try:
        document = etree.fromstring(xml.encode("utf-8"), etree.XMLParser(resolve_entities=False))
    except etree.XMLSyntaxError as e:
        logger.error(f"Invalid XML structure in assertion: {e}")
        raise SignatureComputationError(f"Invalid XML structure in assertion: {e}") from e

    assertions = document.xpath(ASSERTION_XPATH)
    if not assertions:
        raise SignatureComputationError("No Assertion element found to sign.")
    assertion = assertions[0]

    try:
        anchors = document.xpath(descriptor.insertion_xpath)
    except etree.XPathError as e:
        raise SignatureComputationError(
            f"Invalid signature location XPath {descriptor.insertion_xpath!r}: {e}"
        ) from e
    if not isinstance(anchors, list) or not anchors or not isinstance(anchors[0], etree._Element):
        raise SignatureComputationError(
            f"Signature location node not found: {descriptor.insertion_xpath}. "
            f"Check xpathToNodeBeforeSignature."
        )

    nsmap = {descriptor.namespace_prefix or None: DS_NS}
    placeholder = etree.Element(f"{{{DS_NS}}}Signature", nsmap=nsmap)
    placeholder.set("Id", "placeholder")
    anchors[0].addnext(placeholder)

    key_info = build_key_info(descriptor.cert, descriptor.namespace_prefix)
    provider = provider or SignxmlSigningProvider()

    logger.info(
        f"Signing assertion {assertion.get('ID')}: "
        f"signature={descriptor.signature_algorithm}, digest={descriptor.digest_algorithm}"
    )
    try:
        signed = provider.sign(document, descriptor, key_info)
    except SignatureComputationError:
        raise
    except (InvalidInput, InvalidCertificate, ValueError, TypeError) as e:
        logger.error(f"Signature computation failed: {e}")
        raise SignatureComputationError(f"Signature computation failed: {e}") from e

    signed_xml = etree.tostring(signed, encoding="unicode")
    logger.debug(f"Assertion signed successfully: {assertion.get('ID')}")
    return sanitize_namespaces(signed_xml)
