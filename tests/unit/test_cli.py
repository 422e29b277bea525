"""Unit tests for the command line interface."""

import click
import pytest
from click.testing import CliRunner
from lxml import etree

from saml_assertion import __version__
from saml_assertion.cli.main import cli
from saml_assertion.cli.saml_commands import parse_attribute_pairs
from saml_assertion.saml.encryptor import XENC_NS
from saml_assertion.saml.generator import NS
from saml_assertion.saml.template_loader import SAML_NS
from saml_assertion.saml.verifier import verify_assertion

pytestmark = pytest.mark.usefixtures("restore_root_logger")


@pytest.fixture
def runner(monkeypatch, tmp_path):
    """CLI runner isolated from any local configuration file."""
    monkeypatch.chdir(tmp_path)
    return CliRunner()


@pytest.fixture
def log_args(tmp_path):
    return ["--log-file", str(tmp_path / "logs" / "cli.log")]


def _generate(runner, log_args, credential_files, output, *extra):
    return runner.invoke(cli, [
        *log_args,
        "generate",
        "--cert", str(credential_files["signing_cert"]),
        "--key", str(credential_files["signing_key"]),
        "--output", str(output),
        *extra,
    ])


class TestParseAttributePairs:
    """Test NAME=VALUE parsing."""

    def test_single_and_repeated(self):
        """Test repeated names become multi-valued."""
        assert parse_attribute_pairs(("role=admin", "role=user", "dept=it")) == {
            "role": ["admin", "user"],
            "dept": "it",
        }

    def test_value_may_contain_equals(self):
        """Test only the first '=' separates name and value."""
        assert parse_attribute_pairs(("filter=a=b",)) == {"filter": "a=b"}

    def test_missing_separator(self):
        """Test a pair without '=' is rejected."""
        with pytest.raises(click.BadParameter):
            parse_attribute_pairs(("role",))


class TestGenerateCommand:
    """Test the generate command."""

    def test_generate_signed(self, runner, log_args, credential_files, signing_credentials, tmp_path):
        """Test a signed assertion is written to the output file."""
        # Arrange
        output = tmp_path / "assertion.xml"

        # Act
        result = _generate(
            runner, log_args, credential_files, output,
            "--issuer", "urn:idp",
            "--subject", "alice",
            "--audience", "urn:sp",
            "--attribute", "role=admin",
            "--attribute", "role=user",
            "--lifetime", "300",
        )

        # Assert
        assert result.exit_code == 0, result.output
        assert "Assertion saved to" in result.output
        root = verify_assertion(output.read_text(encoding="utf-8"), cert=signing_credentials.cert_pem)
        assert root.findtext("saml:Issuer", namespaces=NS) == "urn:idp"
        assert root.findtext("saml:Subject/saml:NameID", namespaces=NS) == "alice"
        values = root.findall("saml:AttributeStatement/saml:Attribute/saml:AttributeValue", NS)
        assert [v.text for v in values] == ["admin", "user"]
        assert root.find("saml:Conditions", NS).get("NotOnOrAfter") is not None

    def test_generate_prefixed_signature(self, runner, log_args, credential_files, tmp_path):
        """Test the signature prefix option."""
        output = tmp_path / "assertion.xml"

        result = _generate(runner, log_args, credential_files, output, "--signature-prefix", "ds")

        assert result.exit_code == 0, result.output
        assert "<ds:Signature" in output.read_text(encoding="utf-8")

    def test_generate_encrypted(self, runner, log_args, credential_files, tmp_path):
        """Test --encrypt-cert produces an EncryptedAssertion."""
        output = tmp_path / "encrypted.xml"

        result = _generate(
            runner, log_args, credential_files, output,
            "--encrypt-cert", str(credential_files["encryption_cert"]),
        )

        assert result.exit_code == 0, result.output
        root = etree.fromstring(output.read_bytes())
        assert root.tag == f"{{{SAML_NS}}}EncryptedAssertion"
        assert root.find(f"{{{XENC_NS}}}EncryptedData") is not None

    def test_generate_without_cert(self, runner, log_args):
        """Test generate requires a signing certificate."""
        result = runner.invoke(cli, [*log_args, "generate", "--issuer", "urn:idp"])

        assert result.exit_code == 2
        assert "--cert" in result.output

    def test_generate_without_key(self, runner, log_args, credential_files):
        """Test a PEM certificate without key is a usage error."""
        result = runner.invoke(cli, [
            *log_args, "generate", "--cert", str(credential_files["signing_cert"]),
        ])

        assert result.exit_code == 2
        assert "No private key" in result.output

    def test_generate_bad_attribute(self, runner, log_args, credential_files, tmp_path):
        """Test a malformed --attribute is rejected."""
        result = _generate(
            runner, log_args, credential_files, tmp_path / "out.xml", "--attribute", "role",
        )

        assert result.exit_code == 2
        assert "NAME=VALUE" in result.output

    def test_generate_invalid_lifetime(self, runner, log_args, credential_files, tmp_path):
        """Test negative lifetimes are rejected by the option type."""
        result = _generate(
            runner, log_args, credential_files, tmp_path / "out.xml", "--lifetime", "-5",
        )

        assert result.exit_code == 2

    def test_generate_uses_config_defaults(self, runner, log_args, credential_files, tmp_path):
        """Test values missing on the command line come from the config file."""
        config_file = tmp_path / "config.json"
        config_file.write_text(
            '{"assertion": {"issuer": "urn:from-config", "audiences": ["urn:configured"]}}',
            encoding="utf-8",
        )
        output = tmp_path / "assertion.xml"

        result = runner.invoke(cli, [
            "--config", str(config_file),
            *log_args,
            "generate",
            "--cert", str(credential_files["signing_cert"]),
            "--key", str(credential_files["signing_key"]),
            "--output", str(output),
        ])

        assert result.exit_code == 0, result.output
        xml = output.read_text(encoding="utf-8")
        assert "urn:from-config" in xml
        assert "urn:configured" in xml


class TestVerifyCommand:
    """Test the verify command."""

    @pytest.fixture
    def assertion_file(self, runner, log_args, credential_files, tmp_path):
        output = tmp_path / "assertion.xml"
        result = _generate(
            runner, log_args, credential_files, output,
            "--issuer", "urn:idp", "--subject", "alice", "--audience", "urn:sp",
        )
        assert result.exit_code == 0, result.output
        return output

    def test_verify_with_cert(self, runner, log_args, assertion_file, credential_files):
        """Test a valid signature is reported with assertion details."""
        result = runner.invoke(cli, [
            *log_args, "verify", str(assertion_file), "--cert", str(credential_files["signing_cert"]),
        ])

        assert result.exit_code == 0, result.output
        assert "Signature valid" in result.output
        assert "urn:idp" in result.output
        assert "alice" in result.output
        assert "urn:sp" in result.output
        assert "embedded certificate" not in result.output

    def test_verify_embedded_cert_warns(self, runner, log_args, assertion_file):
        """Test verifying without --cert warns about signer identity."""
        result = runner.invoke(cli, [*log_args, "verify", str(assertion_file)])

        assert result.exit_code == 0, result.output
        assert "embedded certificate" in result.output

    def test_verify_tampered(self, runner, log_args, assertion_file, credential_files):
        """Test a modified assertion fails verification."""
        assertion_file.write_text(
            assertion_file.read_text(encoding="utf-8").replace(">alice<", ">mallory<"),
            encoding="utf-8",
        )

        result = runner.invoke(cli, [
            *log_args, "verify", str(assertion_file), "--cert", str(credential_files["signing_cert"]),
        ])

        assert result.exit_code == 1
        assert "Signature invalid" in result.output

    def test_verify_wrong_cert(self, runner, log_args, assertion_file, credential_files):
        """Test another certificate fails verification."""
        result = runner.invoke(cli, [
            *log_args, "verify", str(assertion_file), "--cert", str(credential_files["encryption_cert"]),
        ])

        assert result.exit_code == 1


class TestDecryptCommand:
    """Test the decrypt command."""

    def test_decrypt_round_trip(self, runner, log_args, credential_files, signing_credentials, tmp_path):
        """Test decrypting a generated EncryptedAssertion."""
        # Arrange
        encrypted = tmp_path / "encrypted.xml"
        decrypted = tmp_path / "decrypted.xml"
        _generate(
            runner, log_args, credential_files, encrypted,
            "--issuer", "urn:idp",
            "--encrypt-cert", str(credential_files["encryption_cert"]),
        )

        # Act
        result = runner.invoke(cli, [
            *log_args, "decrypt", str(encrypted),
            "--key", str(credential_files["encryption_key"]),
            "--output", str(decrypted),
        ])

        # Assert
        assert result.exit_code == 0, result.output
        assert "Decrypted assertion saved to" in result.output
        root = verify_assertion(decrypted.read_text(encoding="utf-8"), cert=signing_credentials.cert_pem)
        assert root.findtext("saml:Issuer", namespaces=NS) == "urn:idp"

    def test_decrypt_wrong_key(self, runner, log_args, credential_files, tmp_path):
        """Test decrypting with the wrong key fails."""
        encrypted = tmp_path / "encrypted.xml"
        _generate(
            runner, log_args, credential_files, encrypted,
            "--encrypt-cert", str(credential_files["encryption_cert"]),
        )

        result = runner.invoke(cli, [
            *log_args, "decrypt", str(encrypted), "--key", str(credential_files["signing_key"]),
        ])

        assert result.exit_code == 1
        assert "Decryption failed" in result.output


class TestMiscCommands:
    """Test configuration and version commands."""

    def test_version(self, runner, log_args):
        """Test the version command."""
        result = runner.invoke(cli, [*log_args, "version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_version_option(self, runner):
        """Test --version on the group."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "saml-assertion" in result.output

    def test_config_validate(self, runner, log_args, tmp_path):
        """Test a valid configuration file is summarized."""
        config_file = tmp_path / "config.json"
        config_file.write_text('{"assertion": {"issuer": "urn:idp"}}', encoding="utf-8")

        result = runner.invoke(cli, [*log_args, "config", "validate", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output
        assert "urn:idp" in result.output

    def test_config_validate_invalid(self, runner, log_args, tmp_path):
        """Test an invalid configuration file fails validation."""
        config_file = tmp_path / "config.json"
        config_file.write_text('{"signing": {"signature_algorithm": "rsa-md5"}}', encoding="utf-8")

        result = runner.invoke(cli, [*log_args, "config", "validate", str(config_file)])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output

    def test_invalid_global_config(self, runner, log_args, tmp_path):
        """Test an invalid --config aborts before any command runs."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{broken", encoding="utf-8")

        result = runner.invoke(cli, ["--config", str(config_file), *log_args, "version"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output
