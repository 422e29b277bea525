"""Namespace sanitization for serialized assertions.

Relying parties expect the assertion namespace to be declared exactly once,
on the root ``Assertion`` element. Rather than editing serialized text, the
document is parsed and rebuilt so that every element declares only the
namespace bindings that are not already in scope with the same URI.

Dropping a redundant declaration never changes the exclusive canonical form
of a subtree, so sanitizing a signed assertion keeps its signature valid.
"""

import copy
import logging
from typing import Union

from lxml import etree

from ..utils.exceptions import ParseFailureError

logger = logging.getLogger(__name__)


def sanitize_namespaces(xml: Union[str, bytes]) -> str:
    """Remove redundant namespace declarations from an XML document.

    The operation is idempotent and only looks at the document structure,
    so namespace strings appearing in text or attribute values are left
    untouched.

    Args:
        xml: Serialized XML document

    Returns:
        Serialized document without redundant declarations

    Raises:
        ParseFailureError: If the input is not well-formed XML

    Example:
        >>> sanitize_namespaces('<a xmlns="urn:x"><b xmlns="urn:x"/></a>')
        '<a xmlns="urn:x"><b/></a>'
    """
    if isinstance(xml, str):
        xml = xml.encode("utf-8")

    parser = etree.XMLParser(resolve_entities=False)
    try:
        root = etree.fromstring(xml, parser)
    except etree.XMLSyntaxError as e:
        raise ParseFailureError(f"Cannot sanitize namespaces of malformed XML: {e}") from e

    clean = rebuild_without_redundant_namespaces(root)
    return etree.tostring(clean, encoding="unicode")


def rebuild_without_redundant_namespaces(element: etree._Element) -> etree._Element:
    """Return a copy of ``element`` with redundant declarations dropped.

    Args:
        element: Root of the subtree to copy

    Returns:
        New detached element tree
    """
    root = etree.Element(element.tag, attrib=dict(element.attrib), nsmap=element.nsmap)
    root.text = element.text
    _copy_children(element, root)
    return root


def _copy_children(source: etree._Element, target: etree._Element) -> None:
    for child in source:
        if isinstance(child.tag, str):
            in_scope = source.nsmap
            own = {
                prefix: uri
                for prefix, uri in child.nsmap.items()
                if in_scope.get(prefix) != uri
            }
            new = etree.SubElement(
                target, child.tag, attrib=dict(child.attrib), nsmap=own or None
            )
            new.text = child.text
            _copy_children(child, new)
        else:
            # comments and processing instructions
            new = copy.deepcopy(child)
            target.append(new)
        new.tail = child.tail
