"""SAML CLI commands for generation, verification and decryption.

This module provides CLI commands for:
- generate: Create a signed (and optionally encrypted) assertion
- verify: Check the signature of an assertion
- decrypt: Recover the signed assertion from an EncryptedAssertion
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Tuple

import click

from saml_assertion.config import assertion_options_from_config, get_key_password
from saml_assertion.config.schema import Config
from saml_assertion.models.options import MAX_LIFETIME_IN_SECONDS
from saml_assertion.saml import (
    convert_key_to_pem,
    convert_to_pem,
    create_assertion,
    decrypt_assertion,
    load_certificate,
    load_pem_private_key,
    verify_assertion,
)
from saml_assertion.saml.template_loader import SAML_NS
from saml_assertion.utils.exceptions import SAMLAssertionError

logger = logging.getLogger(__name__)


def _fail(message: str) -> NoReturn:
    click.echo(click.style("✗", fg="red", bold=True) + f" {message}", err=True)
    raise click.exceptions.Exit(1)


def _config(ctx: click.Context) -> Config:
    obj = ctx.find_object(dict) or {}
    return obj.get("config") or Config()


def parse_attribute_pairs(pairs: Tuple[str, ...]) -> Dict[str, Any]:
    """Parse repeated ``NAME=VALUE`` options into an attribute mapping.

    A name given more than once becomes a multi-valued attribute.

    Raises:
        click.BadParameter: If a pair has no ``=``

    Example:
        >>> parse_attribute_pairs(("role=admin", "role=user", "dept=it"))
        {'role': ['admin', 'user'], 'dept': 'it'}
    """
    attributes: Dict[str, Any] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise click.BadParameter(
                f"Expected NAME=VALUE, got: {pair!r}", param_hint="--attribute"
            )
        if name in attributes:
            existing = attributes[name]
            attributes[name] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            attributes[name] = value
    return attributes


def _write_or_echo(xml: str, output: Optional[Path], what: str) -> None:
    if output:
        output.write_text(xml, encoding="utf-8")
        click.echo(click.style("✓", fg="green", bold=True) + f" {what} saved to: {output}")
    else:
        click.echo(xml)


@click.command(name="generate")
@click.option("--cert", type=click.Path(exists=True, path_type=Path), help="Signing certificate (PEM/DER/PKCS12)")
@click.option("--key", type=click.Path(exists=True, path_type=Path), help="Signing private key (PEM)")
@click.option("--key-password", type=str, help="Private key or PKCS12 password")
@click.option("--issuer", type=str, help="Issuer identifier")
@click.option("--subject", type=str, help="NameID value")
@click.option("--subject-format", type=str, help="NameID Format URI")
@click.option("--audience", "audiences", type=str, multiple=True, help="Audience URI (repeatable)")
@click.option("--recipient", type=str, help="SubjectConfirmationData Recipient")
@click.option("--in-response-to", type=str, help="SubjectConfirmationData InResponseTo")
@click.option("--lifetime", type=click.IntRange(min=0, max=MAX_LIFETIME_IN_SECONDS), help="Validity window in seconds")
@click.option("--attribute", "attribute_pairs", type=str, multiple=True, help="Attribute NAME=VALUE (repeatable)")
@click.option("--session-index", type=str, help="AuthnStatement SessionIndex")
@click.option("--authn-context", type=str, help="AuthnContextClassRef URI")
@click.option("--signature-algorithm", type=click.Choice(["rsa-sha256", "rsa-sha1"]), help="Signature algorithm")
@click.option("--digest-algorithm", type=click.Choice(["sha256", "sha1"]), help="Digest algorithm")
@click.option("--signature-prefix", type=str, help="Namespace prefix of the Signature element")
@click.option("--encrypt-cert", type=click.Path(exists=True, path_type=Path), help="Recipient certificate; enables encryption")
@click.option("--output", type=click.Path(path_type=Path), help="Save assertion to file")
@click.pass_context
def generate(
    ctx: click.Context,
    cert: Optional[Path],
    key: Optional[Path],
    key_password: Optional[str],
    issuer: Optional[str],
    subject: Optional[str],
    subject_format: Optional[str],
    audiences: Tuple[str, ...],
    recipient: Optional[str],
    in_response_to: Optional[str],
    lifetime: Optional[int],
    attribute_pairs: Tuple[str, ...],
    session_index: Optional[str],
    authn_context: Optional[str],
    signature_algorithm: Optional[str],
    digest_algorithm: Optional[str],
    signature_prefix: Optional[str],
    encrypt_cert: Optional[Path],
    output: Optional[Path],
) -> None:
    """Generate a signed SAML 2.0 assertion.

    Values not given on the command line come from the configuration file.

    Examples:

        saml-assertion generate --cert certs/idp.pem --key certs/idp.key \\
            --issuer urn:idp --subject alice --audience urn:sp \\
            --attribute role=admin --lifetime 300

        saml-assertion generate --cert certs/idp.p12 --key-password secret \\
            --issuer urn:idp --encrypt-cert certs/sp.pem --output encrypted.xml
    """
    config = _config(ctx)
    cert_path = cert or config.signing.cert_path
    key_path = key or config.signing.key_path
    if cert_path is None:
        raise click.UsageError(
            "Signing requires --cert (or signing.cert_path in the configuration file)."
        )

    password = key_password.encode("utf-8") if key_password else get_key_password(config)

    try:
        bundle = load_certificate(cert_path, key_path=key_path, password=password)
        if bundle.private_key is None:
            raise click.UsageError(
                "No private key available. Provide --key or use a PKCS12 certificate."
            )

        options: Dict[str, Any] = assertion_options_from_config(config)
        options["key"] = convert_key_to_pem(bundle.private_key).decode("ascii")
        options["cert"] = convert_to_pem(bundle.certificate).decode("ascii")

        overrides = {
            "issuer": issuer,
            "nameIdentifier": subject,
            "nameIdentifierFormat": subject_format,
            "recipient": recipient,
            "inResponseTo": in_response_to,
            "lifetimeInSeconds": lifetime,
            "sessionIndex": session_index,
            "authnContextClassRef": authn_context,
            "signatureAlgorithm": signature_algorithm,
            "digestAlgorithm": digest_algorithm,
            "signatureNamespacePrefix": signature_prefix,
        }
        options.update({name: value for name, value in overrides.items() if value is not None})
        if audiences:
            options["audiences"] = list(audiences)
        if attribute_pairs:
            options["attributes"] = parse_attribute_pairs(attribute_pairs)

        recipient_cert_path = encrypt_cert or config.encryption.cert_path
        if recipient_cert_path is not None:
            recipient_bundle = load_certificate(recipient_cert_path)
            options["encryptionCert"] = convert_to_pem(recipient_bundle.certificate).decode("ascii")

        logger.info(f"Generating assertion signed by {bundle.info.subject}")
        xml = create_assertion(options)
    except SAMLAssertionError as e:
        logger.error(f"Assertion generation failed: {e}")
        _fail(f"Assertion generation failed: {e}")

    _write_or_echo(xml, output, "Assertion")
    logger.info("Assertion generation completed successfully")


@click.command(name="verify")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--cert", type=click.Path(exists=True, path_type=Path), help="Signing certificate (defaults to the embedded one)")
@click.option("--allow-sha1", is_flag=True, help="Accept SHA-1 signatures and digests")
def verify(file: Path, cert: Optional[Path], allow_sha1: bool) -> None:
    """Verify the signature of a SAML assertion.

    Example:

        saml-assertion verify assertion.xml --cert certs/idp.pem
    """
    xml = file.read_text(encoding="utf-8")
    try:
        cert_pem = convert_to_pem(load_certificate(cert).certificate) if cert else None
        assertion = verify_assertion(xml, cert=cert_pem, allow_sha1=allow_sha1)
    except SAMLAssertionError as e:
        _fail(f"Signature invalid: {e}")

    click.echo(click.style("✓", fg="green", bold=True) + " Signature valid")
    if cert is None:
        click.echo(
            click.style("⚠", fg="yellow", bold=True)
            + " Verified against the embedded certificate; signer identity not checked"
        )

    issuer = assertion.find(f"{{{SAML_NS}}}Issuer")
    name_id = assertion.find(f"{{{SAML_NS}}}Subject/{{{SAML_NS}}}NameID")
    audiences: List[str] = [
        audience.text or ""
        for audience in assertion.iterfind(
            f"{{{SAML_NS}}}Conditions/{{{SAML_NS}}}AudienceRestriction/{{{SAML_NS}}}Audience"
        )
    ]
    click.echo(f"  Assertion ID:  {assertion.get('ID', 'N/A')}")
    click.echo(f"  Issue instant: {assertion.get('IssueInstant', 'N/A')}")
    click.echo(f"  Issuer:        {issuer.text if issuer is not None and issuer.text else 'N/A'}")
    click.echo(f"  Subject:       {name_id.text if name_id is not None and name_id.text else 'N/A'}")
    click.echo(f"  Audiences:     {', '.join(audiences) or 'N/A'}")


@click.command(name="decrypt")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--key", type=click.Path(exists=True, path_type=Path), required=True, help="Recipient private key (PEM)")
@click.option("--key-password", type=str, help="Private key password")
@click.option("--output", type=click.Path(path_type=Path), help="Save decrypted assertion to file")
def decrypt(file: Path, key: Path, key_password: Optional[str], output: Optional[Path]) -> None:
    """Decrypt an EncryptedAssertion.

    Example:

        saml-assertion decrypt encrypted.xml --key certs/sp.key --output assertion.xml
    """
    xml = file.read_text(encoding="utf-8")
    try:
        private_key = load_pem_private_key(
            key, key_password.encode("utf-8") if key_password else None
        )
        assertion_xml = decrypt_assertion(xml, convert_key_to_pem(private_key))
    except SAMLAssertionError as e:
        _fail(f"Decryption failed: {e}")

    _write_or_echo(assertion_xml, output, "Decrypted assertion")
