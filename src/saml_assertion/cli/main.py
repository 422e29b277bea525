"""Main CLI entry point for the SAML assertion builder.

This module provides the main Click command group for the saml-assertion CLI.
"""

from pathlib import Path
from typing import Optional

import click

from saml_assertion import __version__
from saml_assertion.cli.saml_commands import decrypt, generate, verify
from saml_assertion.config import load_config
from saml_assertion.logging_audit import configure_logging
from saml_assertion.utils.exceptions import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="saml-assertion")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: ./config/config.json)",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to log file (overrides config file)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: bool,
    log_file: Optional[Path],
) -> None:
    """SAML Assertion - build signed and encrypted SAML 2.0 assertions.

    Common usage:

        # Generate a signed assertion
        saml-assertion generate --cert certs/idp.pem --key certs/idp.key \\
            --issuer urn:idp --subject alice --audience urn:sp

        # Verify the signature of an assertion
        saml-assertion verify assertion.xml --cert certs/idp.pem

        # Decrypt an encrypted assertion
        saml-assertion decrypt encrypted.xml --key certs/sp.key

    Use --help with any command for more information.
    """
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except ConfigurationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + f" Error loading configuration: {e}", err=True)
        raise click.exceptions.Exit(1)

    ctx.obj["config"] = config_obj
    ctx.obj["verbose"] = verbose

    # CLI flags > config file > defaults
    log_level = "DEBUG" if verbose else config_obj.logging.level
    log_file_path = log_file if log_file else config_obj.logging.log_file

    configure_logging(
        level=log_level,
        log_file=log_file_path,
        redact_secrets=config_obj.logging.redact_secrets,
    )


cli.add_command(generate)
cli.add_command(verify)
cli.add_command(decrypt)


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command()
@click.argument("config_file", type=click.Path(exists=True, path_type=Path))
def validate(config_file: Path) -> None:
    """Validate a configuration file.

    Example:
        saml-assertion config validate config/config.json
    """
    try:
        config_obj = load_config(config_file)
    except ConfigurationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + " Configuration validation failed")
        click.echo(f"\n{e}", err=True)
        raise click.exceptions.Exit(1)

    click.echo(click.style("✓", fg="green", bold=True) + " Configuration is valid")
    click.echo(f"\nConfiguration file: {config_file}")

    click.echo("\nSigning:")
    click.echo(f"  Cert path:   {config_obj.signing.cert_path or 'Not configured'}")
    click.echo(f"  Key path:    {config_obj.signing.key_path or 'Not configured'}")
    click.echo(
        f"  Algorithms:  {config_obj.signing.signature_algorithm} / "
        f"{config_obj.signing.digest_algorithm}"
    )

    click.echo("\nAssertion:")
    click.echo(f"  Issuer:      {config_obj.assertion.issuer or 'Not configured'}")
    click.echo(f"  Lifetime:    {config_obj.assertion.lifetime_in_seconds}s")
    click.echo(f"  Audiences:   {', '.join(config_obj.assertion.audiences) or 'None'}")

    click.echo("\nEncryption:")
    click.echo(f"  Cert path:   {config_obj.encryption.cert_path or 'Disabled'}")

    click.echo("\nLogging:")
    click.echo(f"  Level:       {config_obj.logging.level}")
    click.echo(f"  Log file:    {config_obj.logging.log_file}")
    click.echo(f"  Redact:      {config_obj.logging.redact_secrets}")


cli.add_command(config)


@cli.command()
def version() -> None:
    """Display version information."""
    click.echo(f"saml-assertion version {__version__}")


if __name__ == "__main__":
    cli()
