"""Assertion option normalization.

Validates caller input and fills in defaults before any XML work starts.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Union

from pydantic import AliasChoices, ValidationError

from ..models.options import AssertionOptions
from ..utils.exceptions import (
    MissingCertificateError,
    MissingCredentialError,
    OptionsValidationError,
)

logger = logging.getLogger(__name__)

# Legacy name of signatureNamespacePrefix, used only when that option is empty
LEGACY_PREFIX_OPTION = "prefix"


def _option_field_names() -> Dict[str, str]:
    """Map every accepted option name to its AssertionOptions field name."""
    names: Dict[str, str] = {}
    for name, field in AssertionOptions.model_fields.items():
        names[name] = name
        if field.alias:
            names[field.alias] = name
        if isinstance(field.validation_alias, AliasChoices):
            for choice in field.validation_alias.choices:
                if isinstance(choice, str):
                    names[choice] = name
        elif isinstance(field.validation_alias, str):
            names[field.validation_alias] = name
    names.pop(LEGACY_PREFIX_OPTION, None)
    return names


_FIELD_NAMES = _option_field_names()


def normalize_options(
    raw: Union[AssertionOptions, Mapping[str, Any], None] = None, **overrides: Any
) -> AssertionOptions:
    """Validate and default assertion options.

    The signing key and certificate are checked first so that a missing
    credential is reported before schema validation or document work.

    Args:
        raw: Options mapping (camelCase or snake_case keys) or an
             already-built AssertionOptions
        **overrides: Additional options merged over ``raw``

    Returns:
        Fully defaulted, frozen AssertionOptions

    Raises:
        MissingCredentialError: If no signing key is present
        MissingCertificateError: If no certificate is present
        OptionsValidationError: If any other option is invalid

    Example:
        >>> options = normalize_options({"key": key_pem, "cert": cert_pem, "audiences": "urn:sp"})
        >>> options.audiences
        ('urn:sp',)
    """
    if isinstance(raw, AssertionOptions):
        if not overrides:
            _require_credentials(raw.key, raw.cert)
            return raw
        # shallow copy keeps classified attribute values as they are
        data: dict[str, Any] = {name: getattr(raw, name) for name in AssertionOptions.model_fields}
    else:
        data = _by_field_name(raw or {})
    data.update(_by_field_name(overrides))

    legacy_prefix = data.pop(LEGACY_PREFIX_OPTION, None)
    if legacy_prefix is not None and not data.get("signature_namespace_prefix"):
        data["signature_namespace_prefix"] = legacy_prefix

    _require_credentials(data.get("key"), data.get("cert"))

    try:
        options = AssertionOptions.model_validate(data)
    except ValidationError as e:
        logger.error(f"Assertion options failed validation: {e.error_count()} error(s)")
        raise OptionsValidationError(
            f"Invalid assertion options:\n{e}\n\n"
            f"Fix: check option names and value types."
        ) from e

    logger.debug(
        f"Options normalized: signature={options.signature_algorithm}, "
        f"digest={options.digest_algorithm}, audiences={len(options.audiences)}, "
        f"attributes={len(options.attributes)}, encrypt={options.encryption_enabled}"
    )
    return options


def _require_credentials(key: Any, cert: Any) -> None:
    if not key:
        raise MissingCredentialError(
            "Expect a private key in PEM format. "
            "Provide the signing key with the 'key' option."
        )
    if not cert:
        raise MissingCertificateError(
            "Expect a public key certificate in PEM format. "
            "Provide the signing certificate with the 'cert' option."
        )


def _by_field_name(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename camelCase and aliased option names to field names.

    Unknown names are kept as given and ignored by validation.
    """
    return {_FIELD_NAMES.get(key, key): value for key, value in options.items()}
