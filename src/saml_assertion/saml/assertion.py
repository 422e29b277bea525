"""Assertion generation pipeline.

Normalize options, build the document from the skeleton, sanitize, sign,
and encrypt when a recipient certificate is configured.

Two entry points share the pipeline: ``create_assertion`` returns the XML
and raises on failure; ``create`` returns an ``AssertionResult`` and
optionally reports through a ``callback(error, xml)``.
"""

import logging
import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, List, Optional, Union

from ..models.options import AssertionOptions
from ..models.saml import AssertionResult, EncryptionDescriptor, SignatureDescriptor
from ..utils.exceptions import EncryptionError, SAMLAssertionError
from .encryptor import EncryptionProvider, encrypt_assertion
from .generator import render_assertion
from .options import normalize_options
from .signer import SigningProvider, sign_assertion

logger = logging.getLogger(__name__)

ResultCallback = Callable[[Optional[Exception], Optional[str]], None]

OptionsInput = Union[AssertionOptions, Mapping[str, Any]]


def create_assertion(
    options: OptionsInput,
    signing_provider: Optional[SigningProvider] = None,
    encryption_provider: Optional[EncryptionProvider] = None,
    now: Optional[datetime] = None,
    completion_timeout: Optional[float] = None,
) -> str:
    """Create a signed, and optionally encrypted, SAML 2.0 assertion.

    Args:
        options: Assertion options (mapping or AssertionOptions)
        signing_provider: Signature provider (defaults to signxml)
        encryption_provider: Encryption provider (defaults to xmlsec)
        now: Issue instant (defaults to the current time)
        completion_timeout: Seconds to wait for the encryption provider to
            complete. ``None`` waits until it does.

    Returns:
        Signed ``Assertion`` XML, or ``EncryptedAssertion`` XML when
        ``encryptionCert`` is set

    Raises:
        MissingCredentialError: If no signing key is configured
        MissingCertificateError: If no signing certificate is configured
        OptionsValidationError: If any other option is invalid
        ParseFailureError: If the document cannot be built or serialized
        SignatureComputationError: If signing fails
        EncryptionError: If encryption fails or does not complete within
            ``completion_timeout``

    Example:
        >>> xml = create_assertion({
        ...     "key": key_pem,
        ...     "cert": cert_pem,
        ...     "issuer": "urn:issuer",
        ...     "lifetimeInSeconds": 600,
        ...     "audiences": "urn:myapp",
        ...     "attributes": {"http://schemas.example.com/claims/role": "admin"},
        ... })
    """
    normalized = normalize_options(options)

    unsigned = render_assertion(normalized, now)
    signed = sign_assertion(
        unsigned, SignatureDescriptor.from_options(normalized), provider=signing_provider
    )

    if not normalized.encryption_enabled:
        logger.info("Assertion created (signed)")
        return signed

    outcome: List[Any] = []
    done = threading.Event()

    def on_complete(error: Optional[Exception], xml: Optional[str]) -> None:
        outcome.append((error, xml))
        done.set()

    encrypt_assertion(
        signed,
        EncryptionDescriptor.from_options(normalized),
        on_complete,
        provider=encryption_provider,
    )
    if not done.wait(completion_timeout):
        raise EncryptionError(
            f"Encryption provider did not complete within {completion_timeout}s. "
            f"Providers must call on_complete exactly once."
        )

    error, encrypted = outcome[0]
    if error is not None:
        raise error
    logger.info("Assertion created (signed and encrypted)")
    return encrypted


def create(
    options: OptionsInput,
    callback: Optional[ResultCallback] = None,
    signing_provider: Optional[SigningProvider] = None,
    encryption_provider: Optional[EncryptionProvider] = None,
    now: Optional[datetime] = None,
    completion_timeout: Optional[float] = None,
) -> AssertionResult:
    """Create an assertion and deliver it as a value-or-error result.

    Failures are never raised. They are carried in the result's error
    slot and, when ``callback`` is given, passed as its first argument
    with ``None`` as the XML. Both the result and the callback are
    delivered only after the encryption provider has completed.

    Example:
        >>> result = create(options, lambda err, xml: print(err or xml))
        >>> result.ok
        True
    """
    try:
        xml = create_assertion(
            options, signing_provider, encryption_provider, now, completion_timeout
        )
    except SAMLAssertionError as e:
        logger.error(f"Assertion creation failed: {e}")
        result = AssertionResult(error=e)
    else:
        result = AssertionResult(xml=xml)

    if callback is not None:
        callback(result.error, result.xml)
    return result
