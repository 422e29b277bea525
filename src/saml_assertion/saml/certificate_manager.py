"""Certificate and key loading for signing and encryption.

The assertion pipeline itself takes PEM text. This module turns files on
disk (PEM, DER or PKCS#12) into that PEM text for the command line and
configuration layers, and extracts display metadata for logging.
"""

import logging
import os
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, pkcs12

from ..models.saml import CertificateBundle, CertificateInfo
from ..utils.exceptions import CertificateLoadError

logger = logging.getLogger(__name__)

_PEM_ARMOR = re.compile(r"-----(BEGIN|END) [A-Z0-9 ]+-----")


class CertificateCache:
    """Certificate bundles keyed by file path and modification time.

    An entry is dropped as soon as the file's mtime changes or the file
    disappears.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, Tuple[float, CertificateBundle]] = {}

    def get(self, cert_path: Path) -> Optional[CertificateBundle]:
        cache_key = str(cert_path.absolute())
        if cache_key not in self._cache:
            return None

        cached_mtime, bundle = self._cache[cache_key]
        try:
            current_mtime = os.path.getmtime(cert_path)
        except OSError:
            del self._cache[cache_key]
            return None

        if current_mtime != cached_mtime:
            del self._cache[cache_key]
            return None

        logger.debug(f"Cache hit for {cert_path.name}")
        return bundle

    def put(self, cert_path: Path, bundle: CertificateBundle) -> None:
        cache_key = str(cert_path.absolute())
        try:
            self._cache[cache_key] = (os.path.getmtime(cert_path), bundle)
        except OSError as e:
            logger.warning(f"Failed to cache certificate {cert_path.name}: {e}")

    def clear(self) -> None:
        self._cache.clear()
        logger.debug("Certificate cache cleared")


_certificate_cache = CertificateCache()


def pem_to_cert(pem: Union[str, bytes]) -> str:
    """Strip PEM armor and whitespace from a certificate.

    Args:
        pem: Certificate in PEM format

    Returns:
        Bare base64 body, as embedded in ``X509Certificate``

    Example:
        >>> pem_to_cert("-----BEGIN CERTIFICATE-----\\nMIIB\\nAAA=\\n-----END CERTIFICATE-----\\n")
        'MIIBAAA='
    """
    if isinstance(pem, bytes):
        pem = pem.decode("ascii")
    return "".join(_PEM_ARMOR.sub("", pem).split())


def get_certificate_info(cert: x509.Certificate) -> CertificateInfo:
    """Extract certificate information for display and logging.

    Args:
        cert: X.509 certificate

    Returns:
        CertificateInfo with subject, issuer, validity, serial and key size
    """
    public_key = cert.public_key()
    key_size = public_key.key_size if hasattr(public_key, "key_size") else None

    return CertificateInfo(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        serial_number=cert.serial_number,
        key_size=key_size,
    )


def check_expiration_warning(cert: x509.Certificate, warning_days: int = 30) -> bool:
    """Log a warning if the certificate expires within ``warning_days``.

    Returns:
        True if the certificate expires within the window
    """
    now = datetime.now(timezone.utc)
    if cert.not_valid_after_utc < now + timedelta(days=warning_days):
        days_remaining = (cert.not_valid_after_utc - now).days
        logger.warning(
            f"Certificate expiring soon: {days_remaining} days remaining "
            f"(expires: {cert.not_valid_after_utc.strftime('%Y-%m-%d')})"
        )
        return True
    return False


def _read_bytes(path: Path, what: str) -> bytes:
    if not path.exists():
        raise CertificateLoadError(
            f"{what} file not found: {path}. "
            f"Ensure the file exists and path is correct."
        )
    try:
        return path.read_bytes()
    except OSError as e:
        raise CertificateLoadError(f"Cannot read {what.lower()} file {path}: {e}") from e


def load_pem_certificate(cert_path: Path) -> x509.Certificate:
    """Load an X.509 certificate from a PEM file.

    Raises:
        CertificateLoadError: If the file is missing or not a PEM certificate
    """
    cert_data = _read_bytes(cert_path, "Certificate")
    try:
        cert = x509.load_pem_x509_certificate(cert_data)
    except ValueError as e:
        raise CertificateLoadError(
            f"Failed to load PEM certificate from {cert_path}: {e}. "
            f"Ensure file is valid PEM format."
        ) from e

    logger.info(f"Loaded PEM certificate: {cert.subject.rfc4514_string()}")
    check_expiration_warning(cert)
    return cert


def load_pem_private_key(key_path: Path, password: Optional[bytes] = None) -> PrivateKeyTypes:
    """Load a private key from a PEM file.

    Args:
        key_path: Path to PEM private key file
        password: Password for an encrypted key

    Raises:
        CertificateLoadError: If the file is missing, malformed, or the
            password is wrong
    """
    key_data = _read_bytes(key_path, "Private key")
    try:
        private_key = serialization.load_pem_private_key(key_data, password=password)
    except TypeError as e:
        raise CertificateLoadError(
            f"Failed to load private key from {key_path}: Incorrect password. "
            f"If key is encrypted, provide correct password."
        ) from e
    except ValueError as e:
        raise CertificateLoadError(
            f"Failed to load PEM private key from {key_path}: {e}. "
            f"Ensure file is valid PEM format and password is correct if encrypted."
        ) from e

    # never log key contents
    logger.info(f"Loaded PEM private key from: {key_path.name}")
    return private_key


def load_der_certificate(cert_path: Path) -> x509.Certificate:
    """Load an X.509 certificate from a DER file.

    Raises:
        CertificateLoadError: If the file is missing or not a DER certificate
    """
    cert_data = _read_bytes(cert_path, "Certificate")
    try:
        cert = x509.load_der_x509_certificate(cert_data)
    except ValueError as e:
        raise CertificateLoadError(
            f"Failed to load DER certificate from {cert_path}: {e}. "
            f"Ensure file is valid DER format."
        ) from e

    logger.info(f"Loaded DER certificate: {cert.subject.rfc4514_string()}")
    check_expiration_warning(cert)
    return cert


def load_pkcs12_certificate(
    p12_path: Path, password: Optional[bytes] = None
) -> Tuple[x509.Certificate, PrivateKeyTypes, List[x509.Certificate]]:
    """Load certificate, private key and chain from a PKCS#12 file.

    Returns:
        Tuple of (certificate, private_key, certificate_chain)

    Raises:
        CertificateLoadError: If the file cannot be loaded or lacks a
            certificate or key
    """
    pkcs12_data = _read_bytes(p12_path, "PKCS12")
    try:
        private_key, certificate, additional_certs = pkcs12.load_key_and_certificates(
            pkcs12_data, password=password
        )
    except (TypeError, ValueError) as e:
        raise CertificateLoadError(
            f"Failed to load PKCS12 from {p12_path}: {e}. "
            f"Ensure file is valid PKCS12 format and password is correct."
        ) from e

    if certificate is None:
        raise CertificateLoadError(f"No certificate found in PKCS12 file: {p12_path}")
    if private_key is None:
        raise CertificateLoadError(f"No private key found in PKCS12 file: {p12_path}")

    logger.info(f"Loaded PKCS12 certificate: {certificate.subject.rfc4514_string()}")
    if additional_certs:
        logger.info(f"Loaded {len(additional_certs)} additional certificates from chain")
    check_expiration_warning(certificate)
    return certificate, private_key, list(additional_certs or [])


def load_certificate(
    cert_path: Union[Path, str],
    key_path: Optional[Union[Path, str]] = None,
    password: Optional[bytes] = None,
    use_cache: bool = True,
) -> CertificateBundle:
    """Load a certificate (and key) with format detection by extension.

    Supports PEM (``.pem``, ``.crt``), DER (``.der``, ``.cer``) and
    PKCS#12 (``.p12``, ``.pfx``). PEM and DER certificates take their
    private key from ``key_path``.

    Args:
        cert_path: Certificate file
        key_path: Separate PEM private key file (PEM/DER only)
        password: Password for PKCS#12 files or encrypted PEM keys
        use_cache: Reuse a bundle loaded earlier from an unchanged file

    Returns:
        CertificateBundle with certificate, key, chain and info

    Raises:
        CertificateLoadError: If loading fails or the format is unsupported

    Example:
        >>> bundle = load_certificate(Path("certs/idp.pem"), key_path=Path("certs/idp.key"))
        >>> print(bundle.info.subject)
    """
    cert_path = Path(cert_path)
    resolved_key_path = Path(key_path) if key_path else None

    if use_cache:
        cached = _certificate_cache.get(cert_path)
        if cached and (resolved_key_path is None or cached.private_key is not None):
            return cached

    suffix = cert_path.suffix.lower()
    private_key: Optional[PrivateKeyTypes] = None
    chain: List[x509.Certificate] = []

    if suffix in (".pem", ".crt"):
        certificate = load_pem_certificate(cert_path)
    elif suffix in (".der", ".cer"):
        certificate = load_der_certificate(cert_path)
    elif suffix in (".p12", ".pfx"):
        certificate, private_key, chain = load_pkcs12_certificate(cert_path, password)
    else:
        raise CertificateLoadError(
            f"Unsupported certificate format: {suffix}. "
            f"Supported formats: .pem, .crt, .der, .cer, .p12, .pfx"
        )

    if resolved_key_path is not None and private_key is None:
        private_key = load_pem_private_key(resolved_key_path, password)

    bundle = CertificateBundle(
        certificate=certificate,
        private_key=private_key,
        chain=chain,
        info=get_certificate_info(certificate),
    )

    if use_cache:
        _certificate_cache.put(cert_path, bundle)
    return bundle


def convert_to_pem(cert: x509.Certificate) -> bytes:
    """Serialize a certificate as PEM."""
    return cert.public_bytes(Encoding.PEM)


def convert_key_to_pem(private_key: PrivateKeyTypes, password: Optional[bytes] = None) -> bytes:
    """Serialize a private key as PKCS#8 PEM, encrypted when a password is given."""
    encryption = (
        serialization.BestAvailableEncryption(password)
        if password
        else serialization.NoEncryption()
    )
    return private_key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def clear_certificate_cache() -> None:
    """Clear all cached certificates."""
    _certificate_cache.clear()
