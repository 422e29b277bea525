"""Unit tests for XML signature verification module."""

import pytest
from lxml import etree

from saml_assertion.saml.assertion import create_assertion
from saml_assertion.saml.certificate_manager import pem_to_cert
from saml_assertion.saml.verifier import extract_embedded_certificate, verify_assertion
from saml_assertion.utils.exceptions import SignatureVerificationError


@pytest.fixture
def signed_xml(base_options):
    """Signed assertion XML."""
    return create_assertion({**base_options, "issuer": "urn:idp", "nameIdentifier": "alice"})


class TestVerifyAssertion:
    """Test signature verification."""

    def test_valid_signature(self, signed_xml, signing_credentials):
        """Test a freshly signed assertion verifies."""
        assertion = verify_assertion(signed_xml, cert=signing_credentials.cert_pem)

        assert etree.QName(assertion).localname == "Assertion"

    def test_embedded_certificate(self, signed_xml):
        """Test verification falls back to the embedded certificate."""
        assertion = verify_assertion(signed_xml)

        assert assertion.get("ID").startswith("_")

    def test_bytes_input(self, signed_xml, signing_credentials):
        """Test bytes input is accepted."""
        verify_assertion(signed_xml.encode("utf-8"), cert=signing_credentials.cert_pem.encode("ascii"))

    def test_tampered_content(self, signed_xml, signing_credentials):
        """Test modifying signed content breaks verification."""
        tampered = signed_xml.replace(">alice<", ">mallory<")

        with pytest.raises(SignatureVerificationError) as exc_info:
            verify_assertion(tampered, cert=signing_credentials.cert_pem)

        assert "Digest mismatch" in str(exc_info.value)

    def test_wrong_certificate(self, signed_xml, encryption_credentials):
        """Test verifying against another certificate fails."""
        with pytest.raises(SignatureVerificationError):
            verify_assertion(signed_xml, cert=encryption_credentials.cert_pem)

    def test_sha1_rejected_by_default(self, base_options, signing_credentials):
        """Test SHA-1 signatures need explicit opt-in."""
        signed = create_assertion(
            {**base_options, "signatureAlgorithm": "rsa-sha1", "digestAlgorithm": "sha1"}
        )

        with pytest.raises(SignatureVerificationError):
            verify_assertion(signed, cert=signing_credentials.cert_pem)

        verify_assertion(signed, cert=signing_credentials.cert_pem, allow_sha1=True)

    def test_unsigned_document(self, signing_credentials):
        """Test a document without a signature fails verification."""
        unsigned = '<Assertion xmlns="urn:oasis:names:tc:SAML:2.0:assertion" ID="_x"/>'

        with pytest.raises(SignatureVerificationError):
            verify_assertion(unsigned, cert=signing_credentials.cert_pem)


class TestExtractEmbeddedCertificate:
    """Test embedded certificate extraction."""

    def test_round_trips_to_same_body(self, signed_xml, signing_credentials):
        """Test the extracted PEM carries the signing certificate."""
        pem = extract_embedded_certificate(signed_xml)

        assert pem.startswith("-----BEGIN CERTIFICATE-----\n")
        assert pem_to_cert(pem) == pem_to_cert(signing_credentials.cert_pem)

    def test_missing_certificate(self):
        """Test a document without KeyInfo certificate is rejected."""
        with pytest.raises(SignatureVerificationError) as exc_info:
            extract_embedded_certificate("<Assertion/>")

        assert "X509Certificate" in str(exc_info.value)

    def test_malformed(self):
        """Test malformed XML is rejected."""
        with pytest.raises(SignatureVerificationError):
            extract_embedded_certificate("<Assertion")
