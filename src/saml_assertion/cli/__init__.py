"""Command line interface for the SAML assertion builder."""
