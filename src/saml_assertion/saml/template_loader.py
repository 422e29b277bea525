"""Assertion skeleton loading.

This module loads the fixed SAML 2.0 assertion skeleton that every
generation call starts from. The skeleton is read and validated once per
process and kept as an immutable value; each call parses its own private
tree from it.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from lxml import etree

from ..utils.exceptions import ParseFailureError, TemplateLoadError

logger = logging.getLogger(__name__)

# SAML 2.0 namespace
SAML_NS = "urn:oasis:names:tc:SAML:2.0:assertion"

# Bundled skeleton
TEMPLATE_PATH = Path(__file__).parent / "templates" / "saml20.xml"

# Elements the document builder mutates; all must be present in the skeleton
REQUIRED_TEMPLATE_ELEMENTS = [
    "Assertion",
    "Issuer",
    "Subject",
    "NameID",
    "SubjectConfirmation",
    "Conditions",
    "AuthnStatement",
    "AuthnContextClassRef",
]


class ValidationResult:
    """Result of assertion template validation.

    Attributes:
        is_valid: True if template passes all validation checks
        errors: List of validation errors (blocking issues)
        warnings: List of validation warnings (non-blocking concerns)
    """

    def __init__(self, is_valid: bool, errors: list[str], warnings: list[str]):
        self.is_valid = is_valid
        self.errors = errors
        self.warnings = warnings


@dataclass(frozen=True)
class AssertionTemplate:
    """Immutable assertion skeleton.

    Attributes:
        xml: Skeleton XML text
        source: File the skeleton was read from
    """

    xml: str
    source: Path

    def parse(self) -> etree._Element:
        """Parse a fresh, caller-owned tree from the skeleton.

        Blank text is dropped so that serialization produces no
        insignificant whitespace.

        Raises:
            ParseFailureError: If the skeleton is not well-formed
        """
        parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False)
        try:
            return etree.fromstring(self.xml.encode("utf-8"), parser)
        except etree.XMLSyntaxError as e:
            raise ParseFailureError(
                f"Assertion template {self.source.name} failed to parse: {e}"
            ) from e


def load_saml_template(template_path: Path) -> str:
    """Load an assertion template from file.

    Args:
        template_path: Path to template XML file

    Returns:
        Template XML content as string

    Raises:
        TemplateLoadError: If the file cannot be read
        ParseFailureError: If XML is not well-formed

    Example:
        >>> template = load_saml_template(TEMPLATE_PATH)
        >>> assert "AuthnStatement" in template
    """
    logger.info(f"Loading assertion template from file: {template_path}")

    try:
        content = template_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        error_msg = (
            f"Assertion template file not found: {template_path}. "
            f"Check that the file path is correct and the file exists."
        )
        logger.exception(error_msg)
        raise TemplateLoadError(error_msg) from e
    except PermissionError as e:
        error_msg = (
            f"Permission denied reading assertion template file: {template_path}. "
            f"Check file permissions."
        )
        logger.exception(error_msg)
        raise TemplateLoadError(error_msg) from e
    except UnicodeDecodeError as e:
        error_msg = (
            f"Template encoding error in {template_path}: {e}. "
            f"Ensure file is UTF-8 encoded."
        )
        logger.exception(error_msg)
        raise TemplateLoadError(error_msg) from e

    # Validate XML well-formedness
    try:
        etree.fromstring(content.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        error_msg = (
            f"Malformed XML in assertion template at line {e.lineno}: {e.msg}. "
            f"Check for unclosed tags or invalid characters."
        )
        logger.exception(error_msg)
        raise ParseFailureError(error_msg) from e

    logger.debug(f"Assertion template loaded successfully: {template_path}")
    return content


def validate_saml_template(template_xml: str) -> ValidationResult:
    """Validate assertion template structure.

    Checks that the root is a SAML 2.0 Assertion and that every element
    the document builder fills in is present.

    Args:
        template_xml: Template XML string

    Returns:
        ValidationResult with validation status and messages
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        root = etree.fromstring(template_xml.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        errors.append(f"XML syntax error at line {e.lineno}: {e.msg}")
        return ValidationResult(False, errors, warnings)

    if root.tag != f"{{{SAML_NS}}}Assertion":
        errors.append(
            f"Template root must be <Assertion> in namespace {SAML_NS}, found: {root.tag}"
        )

    if root.nsmap.get(None) != SAML_NS:
        warnings.append(
            f"Template root does not declare {SAML_NS} as its default namespace."
        )

    present = {etree.QName(elem).localname for elem in root.iter() if isinstance(elem.tag, str)}
    for element_name in REQUIRED_TEMPLATE_ELEMENTS:
        if element_name not in present:
            errors.append(
                f"Missing required template element: <{element_name}>. "
                f"The assertion builder fills this element in."
            )

    if errors:
        logger.warning(f"Assertion template validation failed with {len(errors)} errors")
    elif warnings:
        logger.info(f"Assertion template validation passed with {len(warnings)} warnings")
    else:
        logger.debug("Assertion template validation passed")

    return ValidationResult(len(errors) == 0, errors, warnings)


@lru_cache(maxsize=None)
def get_assertion_template(template_path: Path = TEMPLATE_PATH) -> AssertionTemplate:
    """Return the process-wide assertion skeleton, loading it on first use.

    Args:
        template_path: Template file (defaults to the bundled skeleton)

    Returns:
        Cached, immutable AssertionTemplate

    Raises:
        TemplateLoadError: If the file cannot be read
        ParseFailureError: If the template is malformed or incomplete
    """
    template_xml = load_saml_template(template_path)

    validation = validate_saml_template(template_xml)
    if not validation.is_valid:
        error_msg = f"Invalid assertion template: {'; '.join(validation.errors)}"
        logger.error(error_msg)
        raise ParseFailureError(error_msg)

    for warning in validation.warnings:
        logger.warning(f"Assertion template warning: {warning}")

    return AssertionTemplate(xml=template_xml, source=template_path)
