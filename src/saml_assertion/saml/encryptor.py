"""XML encryption of signed assertions using python-xmlsec.

The signed assertion is replaced by an ``xenc:EncryptedData`` element and
wrapped in ``saml:EncryptedAssertion``. A fresh symmetric session key
encrypts the assertion; the session key itself is transported under the
recipient's RSA key in an ``xenc:EncryptedKey``.

Encryption providers report completion through a callback
``on_complete(error, encrypted_xml)``. A provider may call it before
``encrypt`` returns or later from another thread. The default provider
completes synchronously.
"""

import logging
import threading
from typing import Callable, Dict, Optional, Protocol, Tuple, Union

import xmlsec
from lxml import etree

from ..models.saml import EncryptionDescriptor
from ..utils.exceptions import EncryptionError, ParseFailureError
from .template_loader import SAML_NS

logger = logging.getLogger(__name__)

XENC_NS = "http://www.w3.org/2001/04/xmlenc#"

# Content encryption: transform, session key type, session key size in bits
CONTENT_ALGORITHMS: Dict[str, Tuple[object, object, int]] = {
    f"{XENC_NS}aes128-cbc": (xmlsec.constants.TransformAes128Cbc, xmlsec.constants.KeyDataAes, 128),
    f"{XENC_NS}aes192-cbc": (xmlsec.constants.TransformAes192Cbc, xmlsec.constants.KeyDataAes, 192),
    f"{XENC_NS}aes256-cbc": (xmlsec.constants.TransformAes256Cbc, xmlsec.constants.KeyDataAes, 256),
    f"{XENC_NS}tripledes-cbc": (xmlsec.constants.TransformDes3Cbc, xmlsec.constants.KeyDataDes, 192),
}

# Key transport
KEY_ALGORITHMS: Dict[str, object] = {
    f"{XENC_NS}rsa-oaep-mgf1p": xmlsec.constants.TransformRsaOaep,
    f"{XENC_NS}rsa-1_5": xmlsec.constants.TransformRsaPkcs1,
}

CompletionCallback = Callable[[Optional[Exception], Optional[str]], None]


class EncryptionProvider(Protocol):
    """Encrypts a serialized assertion into ``xenc:EncryptedData``."""

    def encrypt(
        self, xml: str, descriptor: EncryptionDescriptor, on_complete: CompletionCallback
    ) -> None:
        """Encrypt ``xml`` and call ``on_complete(error, encrypted_data_xml)`` once."""
        ...


def resolve_algorithm(name: str) -> str:
    """Expand a short algorithm name (``aes256-cbc``) to its XML-Enc URI."""
    return name if "#" in name else f"{XENC_NS}{name}"


class XmlsecEncryptionProvider:
    """EncryptionProvider backed by ``xmlsec.EncryptionContext``."""

    def encrypt(
        self, xml: str, descriptor: EncryptionDescriptor, on_complete: CompletionCallback
    ) -> None:
        try:
            encrypted = self._encrypt(xml, descriptor)
        except EncryptionError as e:
            on_complete(e, None)
            return
        on_complete(None, encrypted)

    def _encrypt(self, xml: str, descriptor: EncryptionDescriptor) -> str:
        content_uri = resolve_algorithm(descriptor.content_algorithm)
        key_uri = resolve_algorithm(descriptor.key_algorithm)
        if content_uri not in CONTENT_ALGORITHMS:
            raise EncryptionError(
                f"Unsupported encryption algorithm: {descriptor.content_algorithm}. "
                f"Supported algorithms: {', '.join(CONTENT_ALGORITHMS)}"
            )
        if key_uri not in KEY_ALGORITHMS:
            raise EncryptionError(
                f"Unsupported key encryption algorithm: {descriptor.key_algorithm}. "
                f"Supported algorithms: {', '.join(KEY_ALGORITHMS)}"
            )
        transform, session_key_type, session_key_size = CONTENT_ALGORITHMS[content_uri]

        try:
            assertion = etree.fromstring(xml.encode("utf-8"), etree.XMLParser(resolve_entities=False))
        except etree.XMLSyntaxError as e:
            raise EncryptionError(f"Cannot encrypt malformed assertion XML: {e}") from e

        # the encrypted node must not be the document root
        holder = etree.Element("holder")
        holder.append(assertion)

        try:
            manager = xmlsec.KeysManager()
            manager.add_key(_load_recipient_key(descriptor))

            enc_data = xmlsec.template.encrypted_data_create(
                holder, transform, type=xmlsec.constants.TypeEncElement, ns="xenc"
            )
            xmlsec.template.encrypted_data_ensure_cipher_value(enc_data)
            key_info = xmlsec.template.encrypted_data_ensure_key_info(enc_data, ns="ds")
            enc_key = xmlsec.template.add_encrypted_key(key_info, KEY_ALGORITHMS[key_uri])
            xmlsec.template.encrypted_data_ensure_cipher_value(enc_key)

            ctx = xmlsec.EncryptionContext(manager)
            ctx.key = xmlsec.Key.generate(
                session_key_type, session_key_size, xmlsec.constants.KeyDataTypeSession
            )
            encrypted = ctx.encrypt_xml(enc_data, assertion)
        except xmlsec.Error as e:
            logger.error(f"XML encryption failed: {e}")
            raise EncryptionError(f"XML encryption failed: {e}") from e

        return etree.tostring(encrypted, encoding="unicode")


def _load_recipient_key(descriptor: EncryptionDescriptor) -> "xmlsec.Key":
    if descriptor.public_key:
        return xmlsec.Key.from_memory(
            _as_bytes(descriptor.public_key), xmlsec.constants.KeyDataFormatPem, None
        )
    return xmlsec.Key.from_memory(
        _as_bytes(descriptor.cert), xmlsec.constants.KeyDataFormatCertPem, None
    )


def _as_bytes(pem: Union[str, bytes]) -> bytes:
    return pem.encode("ascii") if isinstance(pem, str) else pem


def strip_insignificant_whitespace(xml: str) -> str:
    """Drop whitespace-only text and line breaks inside base64 values.

    Raises:
        ParseFailureError: If the input is not well-formed XML
    """
    try:
        root = etree.fromstring(xml.encode("utf-8"), etree.XMLParser(resolve_entities=False))
    except etree.XMLSyntaxError as e:
        raise ParseFailureError(f"Cannot parse encrypted assertion: {e}") from e

    for element in root.iter():
        if element.text is not None and not element.text.strip():
            element.text = None
        if element.tail is not None and not element.tail.strip():
            element.tail = None
        if isinstance(element.tag, str) and etree.QName(element).localname == "CipherValue":
            element.text = "".join((element.text or "").split())

    return etree.tostring(root, encoding="unicode")


def wrap_encrypted_data(encrypted_data_xml: str) -> str:
    """Wrap ``xenc:EncryptedData`` in ``saml:EncryptedAssertion``."""
    try:
        encrypted_data = etree.fromstring(
            encrypted_data_xml.encode("utf-8"), etree.XMLParser(resolve_entities=False)
        )
    except etree.XMLSyntaxError as e:
        raise ParseFailureError(f"Encryption provider returned malformed XML: {e}") from e

    wrapper = etree.Element(f"{{{SAML_NS}}}EncryptedAssertion", nsmap={"saml": SAML_NS})
    wrapper.append(encrypted_data)
    return etree.tostring(wrapper, encoding="unicode")


def encrypt_assertion(
    xml: str,
    descriptor: EncryptionDescriptor,
    on_complete: CompletionCallback,
    provider: Optional[EncryptionProvider] = None,
) -> None:
    """Encrypt a signed assertion into an ``EncryptedAssertion``.

    ``on_complete`` is called exactly once: with ``(None, xml)`` on success,
    where ``xml`` has no insignificant whitespace, or with
    ``(EncryptionError, None)`` on failure.

    Args:
        xml: Signed assertion XML
        descriptor: Recipient key material and algorithms
        on_complete: Completion callback
        provider: Encryption provider (defaults to XmlsecEncryptionProvider)

    Example:
        >>> results = []
        >>> encrypt_assertion(signed_xml, descriptor, lambda err, out: results.append((err, out)))
        >>> error, encrypted = results[0]
    """
    provider = provider or XmlsecEncryptionProvider()
    lock = threading.Lock()
    completed = False

    def finish(error: Optional[Exception], encrypted: Optional[str]) -> None:
        nonlocal completed
        with lock:
            if completed:
                logger.warning("Encryption provider completed more than once; ignoring")
                return
            completed = True

        if error is None and encrypted is None:
            error = EncryptionError("Encryption provider returned no output")
        if error is not None:
            if not isinstance(error, EncryptionError):
                wrapped = EncryptionError(f"XML encryption failed: {error}")
                wrapped.__cause__ = error
                error = wrapped
            logger.error(f"Assertion encryption failed: {error}")
            on_complete(error, None)
            return

        try:
            result = strip_insignificant_whitespace(wrap_encrypted_data(encrypted))
        except ParseFailureError as e:
            failure = EncryptionError(str(e))
            failure.__cause__ = e
            logger.error(f"Assertion encryption failed: {failure}")
            on_complete(failure, None)
            return

        logger.debug("Assertion encrypted successfully")
        on_complete(None, result)

    logger.info(
        f"Encrypting assertion: content={descriptor.content_algorithm}, "
        f"key_transport={descriptor.key_algorithm}"
    )
    try:
        provider.encrypt(xml, descriptor, finish)
    except (EncryptionError, xmlsec.Error, ValueError) as e:
        if completed:
            raise
        finish(e, None)


def decrypt_assertion(xml: str, private_key: Union[str, bytes]) -> str:
    """Decrypt an ``EncryptedAssertion`` with the recipient's private key.

    Args:
        xml: EncryptedAssertion XML
        private_key: Recipient private key in PEM format

    Returns:
        The signed assertion XML

    Raises:
        EncryptionError: If the input holds no EncryptedData or
            decryption fails
    """
    try:
        root = etree.fromstring(xml.encode("utf-8"), etree.XMLParser(resolve_entities=False))
    except etree.XMLSyntaxError as e:
        raise EncryptionError(f"Cannot decrypt malformed XML: {e}") from e

    enc_data = root if etree.QName(root).localname == "EncryptedData" else None
    if enc_data is None:
        enc_data = next(root.iter(f"{{{XENC_NS}}}EncryptedData"), None)
    if enc_data is None:
        raise EncryptionError("No xenc:EncryptedData element found to decrypt.")

    try:
        manager = xmlsec.KeysManager()
        manager.add_key(
            xmlsec.Key.from_memory(_as_bytes(private_key), xmlsec.constants.KeyDataFormatPem, None)
        )
        ctx = xmlsec.EncryptionContext(manager)
        decrypted = ctx.decrypt(enc_data)
    except xmlsec.Error as e:
        logger.error(f"XML decryption failed: {e}")
        raise EncryptionError(f"XML decryption failed: {e}") from e

    if not isinstance(decrypted, etree._Element):
        raise EncryptionError("Decrypted content is not an XML element.")

    logger.debug("Assertion decrypted successfully")
    return etree.tostring(decrypted, encoding="unicode")
