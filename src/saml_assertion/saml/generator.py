"""SAML 2.0 assertion document builder.

This module fills the cached assertion skeleton with issuer, subject,
conditions, attribute and authentication statement data. Every call
parses its own tree from the skeleton, so concurrent calls never share
mutable state.

Child order follows the SAML 2.0 schema: Issuer, Subject, Conditions,
AttributeStatement, AuthnStatement. The AttributeStatement is inserted
explicitly before the AuthnStatement rather than appended.
"""

import logging
import re
import secrets
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

from lxml import etree

from ..models.options import AssertionOptions, NestedValue, classify_attribute_value
from ..utils.exceptions import ParseFailureError
from .namespaces import sanitize_namespaces
from .template_loader import SAML_NS, get_assertion_template

logger = logging.getLogger(__name__)

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

NS = {"saml": SAML_NS}

# Attribute NameFormat identifiers
NAME_FORMAT_URI = "urn:oasis:names:tc:SAML:2.0:attrname-format:uri"
NAME_FORMAT_BASIC = "urn:oasis:names:tc:SAML:2.0:attrname-format:basic"
NAME_FORMAT_UNSPECIFIED = "urn:oasis:names:tc:SAML:2.0:attrname-format:unspecified"

# Key of a nested value holding XML attributes for the enclosing element
XML_ATTRIBUTES_KEY = "_attributes"

_ABSOLUTE_URI = re.compile(
    r"^[A-Za-z][A-Za-z0-9+.\-]*:[A-Za-z0-9\-._~:/?#\[\]@!$&'()*+,;=%]+$"
)
_XML_NAME = re.compile(r"^(?:[^\W\d]|:)[\w.:\-]*$")


def generate_uid() -> str:
    """Generate a random assertion ID suffix.

    Returns:
        64 hex characters (32 random bytes)

    Example:
        >>> len(generate_uid())
        64
    """
    return secrets.token_hex(32)


def current_instant() -> datetime:
    """Return the current UTC time truncated to milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_instant(moment: datetime) -> str:
    """Format a timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are taken to be UTC.

    Example:
        >>> format_instant(datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
        '2024-01-02T03:04:05.678Z'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def infer_name_format(name: str) -> str:
    """Infer the SAML NameFormat of an attribute name.

    Args:
        name: Attribute name

    Returns:
        ``uri`` format for absolute URIs, ``basic`` for valid XML names,
        otherwise ``unspecified``

    Example:
        >>> infer_name_format("http://schemas.example.com/claims/role")
        'urn:oasis:names:tc:SAML:2.0:attrname-format:uri'
        >>> infer_name_format("role")
        'urn:oasis:names:tc:SAML:2.0:attrname-format:basic'
        >>> infer_name_format("first name")
        'urn:oasis:names:tc:SAML:2.0:attrname-format:unspecified'
    """
    if _ABSOLUTE_URI.match(name):
        return NAME_FORMAT_URI
    if _XML_NAME.match(name):
        return NAME_FORMAT_BASIC
    return NAME_FORMAT_UNSPECIFIED


def build_assertion_document(
    options: AssertionOptions, now: Optional[datetime] = None
) -> etree._Element:
    """Build the assertion tree for one generation call.

    Args:
        options: Normalized assertion options
        now: Issue instant (defaults to the current time, truncated to
             milliseconds)

    Returns:
        Root ``Assertion`` element owned by the caller

    Raises:
        TemplateLoadError: If the skeleton cannot be read
        ParseFailureError: If the skeleton is malformed, the lifetime
            window ends outside the supported date range, or the options
            hold text, element or attribute names XML does not allow
    """
    root = get_assertion_template().parse()
    instant = format_instant(now if now is not None else current_instant())
    assertion_id = "_" + (options.uid or generate_uid())

    try:
        has_attributes = _populate(root, options, assertion_id, instant)
    except ValueError as e:
        raise ParseFailureError(f"Cannot build assertion document: {e}") from e

    logger.debug(
        f"Assertion document built: id={assertion_id}, issue_instant={instant}, "
        f"audiences={len(options.audiences)}, attribute_statement={has_attributes}"
    )
    return root


def _populate(
    root: etree._Element, options: AssertionOptions, assertion_id: str, instant: str
) -> bool:
    # lxml raises ValueError for strings XML cannot hold
    root.set("ID", assertion_id)
    root.set("IssueInstant", instant)

    issuer = _require(root, "saml:Issuer")
    if options.issuer:
        issuer.text = options.issuer

    expiry = _lifetime_bounds(instant, options.lifetime_in_seconds)
    conditions = _require(root, "saml:Conditions")
    if expiry is not None:
        conditions.set("NotBefore", instant)
        conditions.set("NotOnOrAfter", expiry)

    if options.audiences:
        restriction = etree.SubElement(conditions, f"{{{SAML_NS}}}AudienceRestriction")
        for audience in options.audiences:
            etree.SubElement(restriction, f"{{{SAML_NS}}}Audience").text = audience

    if options.include_subject_confirmation_data:
        confirmation = _require(root, "saml:Subject/saml:SubjectConfirmation")
        data = etree.SubElement(confirmation, f"{{{SAML_NS}}}SubjectConfirmationData")
        if options.recipient:
            data.set("Recipient", options.recipient)
        if options.in_response_to:
            data.set("InResponseTo", options.in_response_to)
        if expiry is not None:
            data.set("NotOnOrAfter", expiry)

    authn_statement = _require(root, "saml:AuthnStatement")
    try:
        has_attributes = _insert_attribute_statement(authn_statement, options)
    except ValueError as e:
        raise ParseFailureError(f"Cannot build AttributeStatement: {e}") from e

    authn_statement.set("AuthnInstant", instant)
    if options.session_index:
        authn_statement.set("SessionIndex", options.session_index)

    name_id = _require(root, "saml:Subject/saml:NameID")
    if options.name_identifier:
        name_id.text = options.name_identifier
    if options.name_identifier_format:
        name_id.set("Format", options.name_identifier_format)

    if options.authn_context_class_ref:
        class_ref = _require(root, "saml:AuthnStatement/saml:AuthnContext/saml:AuthnContextClassRef")
        class_ref.text = options.authn_context_class_ref

    return has_attributes


def render_assertion(options: AssertionOptions, now: Optional[datetime] = None) -> str:
    """Build, serialize and sanitize the unsigned assertion.

    Args:
        options: Normalized assertion options
        now: Issue instant (defaults to the current time)

    Returns:
        Unsigned assertion XML without insignificant whitespace

    Raises:
        ParseFailureError: If the document cannot be built or serialized
    """
    root = build_assertion_document(options, now)
    try:
        xml = etree.tostring(root, encoding="unicode")
    except (ValueError, TypeError) as e:
        raise ParseFailureError(f"Cannot serialize assertion document: {e}") from e
    return sanitize_namespaces(xml)


def _require(root: etree._Element, path: str) -> etree._Element:
    element = root.find(path, NS)
    if element is None:
        raise ParseFailureError(
            f"Assertion template has no element at {path}. "
            f"The bundled template may be damaged."
        )
    return element


def _lifetime_bounds(instant: str, lifetime_in_seconds: Optional[int]) -> Optional[str]:
    """Return the NotOnOrAfter bound, or None without a lifetime window."""
    if not lifetime_in_seconds:
        return None
    start = datetime.strptime(instant, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)
    try:
        return format_instant(start + timedelta(seconds=lifetime_in_seconds))
    except OverflowError as e:
        raise ParseFailureError(
            f"Lifetime of {lifetime_in_seconds}s from {instant} ends outside the supported date range"
        ) from e


def _insert_attribute_statement(
    authn_statement: etree._Element, options: AssertionOptions
) -> bool:
    """Insert the AttributeStatement before the AuthnStatement.

    The statement is attached before it is filled so that new elements
    pick up the root's namespace bindings. It is removed again when no
    attribute carries a value.

    Returns:
        True if an AttributeStatement was emitted
    """
    statement = etree.SubElement(authn_statement.getparent(), f"{{{SAML_NS}}}AttributeStatement")
    authn_statement.addprevious(statement)

    for name, values in options.attributes.items():
        if not values:
            logger.debug(f"Skipping attribute without values: {name}")
            continue

        attribute = etree.SubElement(statement, f"{{{SAML_NS}}}Attribute")
        attribute.set("Name", name)
        if options.include_attribute_name_format:
            attribute.set("NameFormat", infer_name_format(name))

        for value in values:
            attribute_value = etree.SubElement(attribute, f"{{{SAML_NS}}}AttributeValue")
            if options.typed_attributes:
                attribute_value.set(f"{{{XSI_NS}}}type", value.xsi_type)
            if isinstance(value, NestedValue):
                _append_nested(attribute_value, value.value)
            else:
                attribute_value.text = value.to_text()

    if len(statement) == 0:
        statement.getparent().remove(statement)
        return False
    return True


def _append_nested(parent: etree._Element, value: Mapping) -> None:
    """Expand a nested value into child elements of ``parent``.

    Keys become elements in the assertion namespace. A list under a key
    produces one element per item. The ``_attributes`` key sets XML
    attributes on ``parent`` and is not expanded.
    """
    for key, item in value.items():
        if key == XML_ATTRIBUTES_KEY:
            if not isinstance(item, Mapping):
                raise ValueError(f"{XML_ATTRIBUTES_KEY} must map attribute names to values")
            for attr_name, attr_value in item.items():
                if attr_value is not None:
                    parent.set(_qualify(parent, str(attr_name)), _scalar_text(attr_value))
            continue

        for entry in _as_items(item):
            child = etree.SubElement(parent, f"{{{SAML_NS}}}{key}")
            if isinstance(entry, Mapping):
                _append_nested(child, entry)
            elif entry is not None:
                child.text = _scalar_text(entry)


def _as_items(item: Any) -> Tuple[Any, ...]:
    if isinstance(item, (list, tuple)):
        return tuple(item)
    return (item,)


def _scalar_text(raw: Any) -> str:
    return classify_attribute_value(raw).to_text()


def _qualify(element: etree._Element, name: str) -> str:
    """Resolve a ``prefix:local`` attribute name against in-scope namespaces."""
    if ":" not in name:
        return name
    prefix, local = name.split(":", 1)
    uri = element.nsmap.get(prefix)
    if uri is None:
        raise ValueError(f"Unbound namespace prefix in attribute name: {name}")
    return f"{{{uri}}}{local}"
