"""Assertion option models using pydantic.

This module defines the caller-facing configuration of one assertion
generation call. Options are accepted under their camelCase names
(``lifetimeInSeconds``) as well as their snake_case field names
(``lifetime_in_seconds``). The model is frozen: once normalized, options
do not change for the duration of a call.

Attribute values are classified once, at this boundary, into a tagged
union (``TextValue``, ``BooleanValue``, ``NumberValue``, ``NestedValue``)
so the document builder never inspects raw Python types.
"""

from collections.abc import Mapping
from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

# Defaults
DEFAULT_SIGNATURE_ALGORITHM = "rsa-sha256"
DEFAULT_DIGEST_ALGORITHM = "sha256"
DEFAULT_SIGNATURE_ANCHOR = "//*[local-name(.)='Issuer']"
DEFAULT_ENCRYPTION_ALGORITHM = "http://www.w3.org/2001/04/xmlenc#aes256-cbc"
DEFAULT_KEY_ENCRYPTION_ALGORITHM = "http://www.w3.org/2001/04/xmlenc#rsa-oaep-mgf1p"

# 100 years
MAX_LIFETIME_IN_SECONDS = 100 * 365 * 24 * 60 * 60


class TextValue(BaseModel):
    """Plain string attribute value."""

    model_config = ConfigDict(frozen=True)

    xsi_type: ClassVar[str] = "xs:string"

    kind: Literal["text"] = "text"
    value: str

    def to_text(self) -> str:
        return self.value


class BooleanValue(BaseModel):
    """Boolean attribute value rendered as ``true``/``false``."""

    model_config = ConfigDict(frozen=True)

    xsi_type: ClassVar[str] = "xs:boolean"

    kind: Literal["boolean"] = "boolean"
    value: bool

    def to_text(self) -> str:
        return "true" if self.value else "false"


class NumberValue(BaseModel):
    """Numeric attribute value.

    Integral floats are rendered without a fractional part so that
    ``1.0`` and ``1`` produce the same ``AttributeValue`` text.
    """

    model_config = ConfigDict(frozen=True)

    xsi_type: ClassVar[str] = "xs:double"

    kind: Literal["number"] = "number"
    value: Union[int, float]

    def to_text(self) -> str:
        if isinstance(self.value, float) and self.value.is_integer():
            return str(int(self.value))
        return str(self.value)


class NestedValue(BaseModel):
    """Structured attribute value expanded into child XML elements.

    Keys become element names. The ``_attributes`` key holds XML attributes
    for the element it appears in.
    """

    model_config = ConfigDict(frozen=True)

    xsi_type: ClassVar[str] = "xs:anyType"

    kind: Literal["nested"] = "nested"
    value: Dict[str, Any]


AttributeValue = Annotated[
    Union[TextValue, BooleanValue, NumberValue, NestedValue],
    Field(discriminator="kind"),
]

_ATTRIBUTE_VALUE_TYPES = (TextValue, BooleanValue, NumberValue, NestedValue)


def classify_attribute_value(raw: Any, as_xml_map: bool = False) -> Optional[Any]:
    """Classify a raw attribute value into its tagged union member.

    Args:
        raw: Value supplied by the caller
        as_xml_map: Whether mapping values may be expanded as structured XML

    Returns:
        The classified value, or None for an undefined value

    Raises:
        ValueError: If a mapping is supplied while as_xml_map is disabled

    Example:
        >>> classify_attribute_value(True)
        BooleanValue(kind='boolean', value=True)
        >>> classify_attribute_value(None) is None
        True
    """
    if raw is None:
        return None
    if isinstance(raw, _ATTRIBUTE_VALUE_TYPES):
        return raw
    # bool is checked before int because bool is an int subclass
    if isinstance(raw, bool):
        return BooleanValue(value=raw)
    if isinstance(raw, (int, float)):
        return NumberValue(value=raw)
    if isinstance(raw, str):
        return TextValue(value=raw)
    if isinstance(raw, Mapping):
        if not as_xml_map:
            raise ValueError(
                "Structured attribute values require asXmlMap=True. "
                "Enable asXmlMap or pass the value as a string."
            )
        return NestedValue(value=dict(raw))
    return TextValue(value=str(raw))


class AssertionOptions(BaseModel):
    """Configuration of one assertion generation call.

    Attributes:
        key: Signing private key in PEM format
        cert: Signing certificate in PEM format
        signature_algorithm: ``rsa-sha256`` or ``rsa-sha1``
        digest_algorithm: ``sha256`` or ``sha1``
        issuer: Text of the Issuer element
        lifetime_in_seconds: Validity window written to Conditions
        audiences: Audience URIs for the AudienceRestriction
        recipient: SubjectConfirmationData Recipient
        in_response_to: SubjectConfirmationData InResponseTo
        include_subject_confirmation_data: Emit SubjectConfirmationData
        as_xml_map: Expand mapping attribute values into XML elements
        typed_attributes: Emit xsi:type on each AttributeValue
        include_attribute_name_format: Emit an inferred NameFormat
        attributes: Attribute name to classified values
        session_index: AuthnStatement SessionIndex
        name_identifier: NameID text
        name_identifier_format: NameID Format
        authn_context_class_ref: AuthnContextClassRef text
        uid: Caller-supplied assertion ID suffix
        xpath_to_node_before_signature: Node the Signature is inserted after
        signature_namespace_prefix: Prefix of the Signature element
        encryption_cert: Recipient certificate; enables encryption
        encryption_public_key: Recipient public key
        encryption_algorithm: Content encryption algorithm URI
        key_encryption_algorithm: Key transport algorithm URI
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    key: Optional[Union[str, bytes]] = None
    cert: Optional[Union[str, bytes]] = None
    signature_algorithm: str = DEFAULT_SIGNATURE_ALGORITHM
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM

    issuer: Optional[str] = None
    lifetime_in_seconds: Optional[int] = Field(default=None, ge=0, le=MAX_LIFETIME_IN_SECONDS)
    audiences: Tuple[str, ...] = ()
    recipient: Optional[str] = None
    in_response_to: Optional[str] = None
    include_subject_confirmation_data: bool = True

    # as_xml_map must precede attributes: the attributes validator reads it
    as_xml_map: bool = False
    typed_attributes: bool = True
    include_attribute_name_format: bool = True
    attributes: Dict[str, Tuple[AttributeValue, ...]] = Field(default_factory=dict)

    session_index: Optional[str] = None
    name_identifier: Optional[str] = None
    name_identifier_format: Optional[str] = None
    authn_context_class_ref: Optional[str] = None
    uid: Optional[str] = None

    xpath_to_node_before_signature: str = DEFAULT_SIGNATURE_ANCHOR
    signature_namespace_prefix: str = Field(
        default="",
        validation_alias=AliasChoices(
            "signature_namespace_prefix", "signatureNamespacePrefix", "prefix"
        ),
    )

    encryption_cert: Optional[Union[str, bytes]] = None
    encryption_public_key: Optional[Union[str, bytes]] = None
    encryption_algorithm: str = DEFAULT_ENCRYPTION_ALGORITHM
    key_encryption_algorithm: str = Field(
        default=DEFAULT_KEY_ENCRYPTION_ALGORITHM,
        validation_alias=AliasChoices(
            "key_encryption_algorithm",
            "keyEncryptionAlgorithm",
            "keyEncryptionAlgorighm",
        ),
    )

    @field_validator(
        "signature_algorithm",
        "digest_algorithm",
        "xpath_to_node_before_signature",
        "encryption_algorithm",
        "key_encryption_algorithm",
        mode="before",
    )
    @classmethod
    def default_when_empty(cls, v: Any, info: ValidationInfo) -> Any:
        """Fall back to the field default for None or empty selectors."""
        if v is None or v == "":
            return cls.model_fields[info.field_name].default
        return v

    @field_validator(
        "include_subject_confirmation_data",
        "as_xml_map",
        "typed_attributes",
        "include_attribute_name_format",
        mode="before",
    )
    @classmethod
    def default_flag_when_none(cls, v: Any, info: ValidationInfo) -> Any:
        """Treat an explicit None flag as unset."""
        if v is None:
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("signature_namespace_prefix", mode="before")
    @classmethod
    def normalize_prefix(cls, v: Any) -> str:
        """Non-string prefixes mean an unprefixed signature."""
        return v if isinstance(v, str) else ""

    @field_validator("audiences", mode="before")
    @classmethod
    def normalize_audiences(cls, v: Any) -> Tuple[Any, ...]:
        """Accept one audience or many; drop undefined entries."""
        if v is None:
            return ()
        if isinstance(v, (list, tuple)):
            return tuple(audience for audience in v if audience is not None)
        return (v,)

    @field_validator("attributes", mode="before")
    @classmethod
    def normalize_attribute_values(cls, v: Any, info: ValidationInfo) -> Dict[str, Tuple[Any, ...]]:
        """Normalize each attribute to a tuple of classified values.

        Scalars become one-element tuples and undefined values are dropped.
        An attribute left without values is kept here and skipped when the
        document is built.
        """
        if v is None:
            return {}
        if not isinstance(v, Mapping):
            raise ValueError(
                f"attributes must be a mapping of name to value(s), got {type(v).__name__}"
            )

        as_xml_map = bool(info.data.get("as_xml_map", False))
        normalized: Dict[str, Tuple[Any, ...]] = {}
        for name, raw in v.items():
            raw_values = raw if isinstance(raw, (list, tuple)) else [raw]
            classified = (classify_attribute_value(item, as_xml_map) for item in raw_values)
            normalized[str(name)] = tuple(value for value in classified if value is not None)
        return normalized

    @property
    def encryption_enabled(self) -> bool:
        """Encryption is requested by supplying a recipient certificate."""
        return bool(self.encryption_cert)
