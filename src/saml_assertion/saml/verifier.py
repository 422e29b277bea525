"""XML signature verification module using signxml library.

Verifies the enveloped signature of a generated assertion. Without an
explicit certificate the one embedded in ``KeyInfo`` is trusted, which
proves integrity but not the signer's identity.
"""

import logging
from typing import Optional, Union

from lxml import etree
from signxml import DigestAlgorithm, SignatureConfiguration, SignatureMethod, XMLVerifier
from signxml.exceptions import InvalidCertificate, InvalidDigest, InvalidInput, InvalidSignature

from ..utils.exceptions import SignatureVerificationError
from .signer import DS_NS

logger = logging.getLogger(__name__)

# Accepts the deprecated SHA-1 methods as well
_SHA1_CONFIG = SignatureConfiguration(
    signature_methods=list(SignatureMethod),
    digest_algorithms=list(DigestAlgorithm),
)


def extract_embedded_certificate(xml: Union[str, bytes]) -> str:
    """Return the ``X509Certificate`` embedded in the signature as PEM.

    Raises:
        SignatureVerificationError: If the XML is malformed or holds no
            embedded certificate
    """
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    try:
        root = etree.fromstring(xml, etree.XMLParser(resolve_entities=False))
    except etree.XMLSyntaxError as e:
        raise SignatureVerificationError(f"Invalid XML structure: {e}") from e

    cert_elem = root.find(f".//{{{DS_NS}}}X509Certificate")
    if cert_elem is None or not (cert_elem.text or "").strip():
        raise SignatureVerificationError(
            "No X509Certificate found in the signature's KeyInfo. "
            "Provide the signing certificate explicitly."
        )

    body = "".join(cert_elem.text.split())
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return "-----BEGIN CERTIFICATE-----\n" + "\n".join(lines) + "\n-----END CERTIFICATE-----\n"


def verify_assertion(
    xml: Union[str, bytes],
    cert: Optional[Union[str, bytes]] = None,
    allow_sha1: bool = False,
) -> etree._Element:
    """Verify the XML signature of an assertion.

    Args:
        xml: Signed assertion XML
        cert: Signing certificate in PEM format (defaults to the embedded one)
        allow_sha1: Accept ``rsa-sha1`` signatures and ``sha1`` digests

    Returns:
        The signed ``Assertion`` element, as covered by the signature

    Raises:
        SignatureVerificationError: If verification fails

    Example:
        >>> assertion = verify_assertion(signed_xml, cert=cert_pem)
        >>> assertion.get("ID").startswith("_")
        True
    """
    if cert is None:
        cert = extract_embedded_certificate(xml)
        logger.debug("Verifying against the certificate embedded in KeyInfo")

    if isinstance(xml, str):
        xml = xml.encode("utf-8")

    kwargs = {"x509_cert": cert}
    if allow_sha1:
        kwargs["expect_config"] = _SHA1_CONFIG

    try:
        result = XMLVerifier().verify(xml, **kwargs)
    except InvalidDigest as e:
        logger.error(f"Digest verification failed: {e}")
        raise SignatureVerificationError(
            f"Digest mismatch: {e}. The assertion was modified after signing."
        ) from e
    except InvalidSignature as e:
        logger.error(f"Signature verification failed: {e}")
        raise SignatureVerificationError(f"Invalid signature: {e}") from e
    except (InvalidCertificate, InvalidInput, etree.XMLSyntaxError) as e:
        logger.error(f"Signature verification failed: {e}")
        raise SignatureVerificationError(f"Signature verification failed: {e}") from e

    logger.info("Assertion signature verified successfully")
    return result.signed_xml
