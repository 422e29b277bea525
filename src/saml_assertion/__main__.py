"""Entry point for running saml_assertion as a module.

This allows the package to be executed as:
    python -m saml_assertion
"""

from saml_assertion.cli.main import cli

if __name__ == "__main__":
    cli()
