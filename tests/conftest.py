"""
Shared pytest configuration and fixtures.

This module provides fixtures used across the unit and integration suites:
throwaway RSA credentials for signing and encryption, generated once per
test session with the cryptography library.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


@dataclass(frozen=True)
class Credentials:
    """PEM-encoded private key, public key and self-signed certificate."""

    key_pem: str
    public_key_pem: str
    cert_pem: str


def _make_credentials(common_name: str) -> Credentials:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "TestOrg"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])
    now = datetime.now(timezone.utc)

    # SKI/AKI extensions keep signxml's certificate checks quiet
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(private_key.public_key()),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )

    return Credentials(
        key_pem=private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii"),
        public_key_pem=private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii"),
        cert_pem=cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
    )


@pytest.fixture(scope="session")
def signing_credentials() -> Credentials:
    """Identity provider signing key and certificate."""
    return _make_credentials("Test IdP Signing")


@pytest.fixture(scope="session")
def encryption_credentials() -> Credentials:
    """Relying party encryption key and certificate."""
    return _make_credentials("Test SP Encryption")


@pytest.fixture
def base_options(signing_credentials: Credentials) -> Dict[str, Any]:
    """Minimal valid options: signing credentials only."""
    return {"key": signing_credentials.key_pem, "cert": signing_credentials.cert_pem}


@pytest.fixture
def credential_files(
    tmp_path: Path, signing_credentials: Credentials, encryption_credentials: Credentials
) -> Dict[str, Path]:
    """Write the test credentials to PEM files.

    Returns:
        Mapping of ``signing_cert``, ``signing_key``, ``encryption_cert``,
        ``encryption_key`` to file paths
    """
    files = {
        "signing_cert": (tmp_path / "idp.pem", signing_credentials.cert_pem),
        "signing_key": (tmp_path / "idp.key", signing_credentials.key_pem),
        "encryption_cert": (tmp_path / "sp.pem", encryption_credentials.cert_pem),
        "encryption_key": (tmp_path / "sp.key", encryption_credentials.key_pem),
    }
    for path, content in files.values():
        path.write_text(content, encoding="ascii")
    return {name: path for name, (path, _) in files.items()}


@pytest.fixture
def restore_root_logger():
    """Remove handlers installed by configure_logging after the test."""
    root_logger = logging.getLogger()
    original_handlers = list(root_logger.handlers)
    original_level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in original_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(original_level)
