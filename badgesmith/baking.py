# badgesmith/baking.py
"""
Badge baking: embed a signed credential in an SVG and extract it again.

Two element shapes are supported, both placed as a direct child of the
root <svg> element:

    Modern (OpenBadges 3.0)
        <openbadges:credential xmlns:openbadges="https://purl.imsglobal.org/ob/v3p0">
            {XML-escaped credential JSON, or a compact JWT}
        </openbadges:credential>

    Legacy (OpenBadges 2.0)
        <openbadges:assertion xmlns:openbadges="http://openbadges.org"
                              verify="https://.../verify">
            <![CDATA[{credential JSON}]]>
        </openbadges:assertion>

Baking only adds the namespace declaration and the badge element; the
rest of the SVG text is left untouched. Extraction tries the modern shape
first, then the legacy one. Finding no badge is a normal outcome and
yields an empty ExtractedBadge rather than an exception.
"""

import re
import json
import logging
import xml.etree.ElementTree as ET
from xml.parsers import expat
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from xml.sax.saxutils import escape, quoteattr

from badgesmith.credential import get_proofs
from badgesmith.errors import BakingError, CodecMismatch, MalformedInput
from badgesmith.jwt_proof import credential_from_payload, decode_jwt_unverified
from badgesmith.validator import ValidationResult, validate_credential


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
MODERN_NAMESPACE = "https://purl.imsglobal.org/ob/v3p0"
LEGACY_NAMESPACE = "http://openbadges.org"

BADGE_PREFIX = "openbadges"

_START_TAG = re.compile(
    r"<(?P<name>[^\s/>]+)(?:\s+[^\s=/>]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*\s*(?P<empty>/?)>"
)

# Code points outside the XML 1.0 Char production; JSON escapes those below U+0020
_NON_XML_CHARS = re.compile(r"[\ud800-\udfff\ufffe\uffff]")


class BakeFormat(str, Enum):
    """Badge element shape inside an SVG."""
    MODERN = "modern"
    LEGACY = "legacy"

    @property
    def namespace(self) -> str:
        return MODERN_NAMESPACE if self is BakeFormat.MODERN else LEGACY_NAMESPACE

    @property
    def element(self) -> str:
        return "credential" if self is BakeFormat.MODERN else "assertion"

    @property
    def qualified_name(self) -> str:
        return f"{{{self.namespace}}}{self.element}"


Assertion = Union[Dict[str, Any], str]


@dataclass
class ExtractedBadge:
    """Result of extracting a badge from an SVG."""

    assertion: Optional[Assertion] = None
    """Credential dict, compact JWT string, or None when nothing was found."""

    verification_url: Optional[str] = None
    """The legacy ``verify`` attribute, if present."""

    format: Optional[BakeFormat] = None

    @property
    def found(self) -> bool:
        return self.assertion is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"assertion": self.assertion, "verificationUrl": self.verification_url}


# =============================================================================
# Payload Encoding
# =============================================================================

def _serialize(credential: Assertion) -> str:
    if isinstance(credential, str):
        return credential.strip()
    text = json.dumps(credential, separators=(",", ":"), ensure_ascii=False)
    return _NON_XML_CHARS.sub(lambda m: f"\\u{ord(m.group(0)):04x}", text)


def _cdata(text: str) -> str:
    # "]]>" cannot appear inside a CDATA section; split it across two sections
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _decode_payload(text: str) -> Assertion:
    """Turn element text back into a credential dict or a compact JWT."""
    if text.startswith("{"):
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise CodecMismatch(f"Badge payload is not valid JSON: {e.msg}") from None
        if not isinstance(value, dict):
            raise CodecMismatch("Badge payload must be a JSON object")
        return value

    try:
        decode_jwt_unverified(text)
    except MalformedInput:
        raise CodecMismatch("Badge payload is neither JSON nor a compact JWT") from None
    return text


def _badge_element(credential: Assertion, fmt: BakeFormat, verification_url: Optional[str]) -> str:
    name = f"{BADGE_PREFIX}:{fmt.element}"
    payload = _serialize(credential)
    if fmt is BakeFormat.MODERN:
        attrs = f" verify={quoteattr(verification_url)}" if verification_url else ""
        return f"<{name}{attrs}>{escape(payload)}</{name}>"
    return f"<{name} verify={quoteattr(verification_url)}>{_cdata(payload)}</{name}>"


# =============================================================================
# SVG Text Handling
# =============================================================================

def _parse_svg(svg: Any) -> ET.Element:
    """
    Raises:
        CodecMismatch: If the text is empty or not well-formed XML.
    """
    if isinstance(svg, bytes):
        svg = svg.decode("utf-8", errors="replace")
    if not isinstance(svg, str) or not svg.strip():
        raise CodecMismatch("SVG content must be a non-empty string")
    try:
        return ET.fromstring(svg)
    except ET.ParseError as e:
        raise CodecMismatch(f"SVG is not well-formed XML: {e}") from None


def _find_root_tag(svg: str) -> "re.Match":
    """
    Locate the root element's start tag.

    The parser supplies the offset of the root element, which skips any
    prolog (declaration, comments, doctype). The start tag is then matched
    from that offset, so prefixed names and quoted ">" are handled.

    Raises:
        BakingError: If the text does not parse or its root is not <svg>.
    """
    data = svg.encode("utf-8")
    parser = expat.ParserCreate()
    roots: List[Tuple[str, int]] = []

    def start_element(name, attrs):
        if not roots:
            roots.append((name, parser.CurrentByteIndex))

    parser.StartElementHandler = start_element
    try:
        parser.Parse(data, True)
    except expat.ExpatError as e:
        raise BakingError(f"Invalid SVG content: {e}") from None

    if not roots or roots[0][0].rpartition(":")[2] != "svg":
        raise BakingError("SVG has no root <svg> element")

    name, byte_offset = roots[0]
    match = _START_TAG.match(svg, len(data[:byte_offset].decode("utf-8")))
    if match is None or match.group("name") != name:
        raise BakingError("SVG root start tag could not be located")
    return match


def _badge_prefixes(svg: str) -> List[str]:
    namespaces = "|".join(re.escape(ns) for ns in (MODERN_NAMESPACE, LEGACY_NAMESPACE))
    pattern = re.compile(r"xmlns:([\w.-]+)\s*=\s*([\"'])(?:" + namespaces + r")\2")
    return sorted({m.group(1) for m in pattern.finditer(svg)} | {BADGE_PREFIX})


def _remove_badge_elements(svg: str) -> str:
    """Strip previously baked badge elements so baking can be repeated."""
    for prefix in _badge_prefixes(svg):
        p = re.escape(prefix)
        svg = re.sub(rf"<{p}:(?:credential|assertion)\b[^>]*?/>", "", svg)
        svg = re.sub(
            rf"<{p}:(credential|assertion)\b[^>]*>(?:<!\[CDATA\[.*?\]\]>|.)*?</{p}:\1\s*>",
            "",
            svg,
            flags=re.DOTALL,
        )
    return svg


def _declare_namespace(root_tag: str, name: str, fmt: BakeFormat) -> str:
    declaration = f'xmlns:{BADGE_PREFIX}="{fmt.namespace}"'
    existing = re.compile(rf"xmlns:{BADGE_PREFIX}\s*=\s*([\"']).*?\1", re.DOTALL)
    if existing.search(root_tag):
        return existing.sub(declaration, root_tag, count=1)
    return f"<{name} {declaration}{root_tag[len(name) + 1:]}"


# =============================================================================
# Bake
# =============================================================================

def _check_bakeable(credential: Any, fmt: BakeFormat) -> None:
    if isinstance(credential, str):
        if fmt is not BakeFormat.MODERN:
            raise BakingError("Only the modern format can carry a compact JWT")
        try:
            decode_jwt_unverified(credential)
        except MalformedInput as e:
            raise BakingError(f"Credential token is malformed: {e}") from None
        return

    validate_credential(credential).raise_if_invalid()
    if not get_proofs(credential):
        raise BakingError("Credential must be signed before baking")


def bake_svg(
    svg: str,
    credential: Assertion,
    format: BakeFormat = BakeFormat.MODERN,
    verification_url: Optional[str] = None,
) -> str:
    """
    Embed a signed credential in an SVG.

    Any badge element already present is replaced, so baking the same SVG
    twice gives the same result as baking it once.

    Args:
        svg: Base SVG document text.
        credential: Signed credential dict, or a compact JWT (modern only).
        format: Element shape to write.
        verification_url: Required for the legacy shape; optional "verify"
            attribute for the modern one.

    Returns:
        The baked SVG text.

    Raises:
        BakingError: If the SVG is invalid, the credential is unsigned, a
            legacy bake has no verification URL, or the result would not
            be well-formed XML.
        ValidationFailed: If a credential dict is structurally invalid.
    """
    fmt = BakeFormat(format)
    try:
        _parse_svg(svg)
    except CodecMismatch as e:
        raise BakingError(f"Invalid SVG content: {e}") from None

    if fmt is BakeFormat.LEGACY and not verification_url:
        raise BakingError("Legacy baking requires a verification URL")
    _check_bakeable(credential, fmt)

    content = _remove_badge_elements(svg)
    match = _find_root_tag(content)
    name = match.group("name")
    root_tag = _declare_namespace(match.group(0), name, fmt)
    element = _badge_element(credential, fmt, verification_url)

    if match.group("empty"):
        # self-closing root: <svg .../> becomes <svg ...>element</svg>
        opening = root_tag[: root_tag.rfind("/")].rstrip() + ">"
        replacement = f"{opening}{element}</{name}>"
    else:
        replacement = f"{root_tag}{element}"

    baked = content[: match.start()] + replacement + content[match.end():]
    try:
        _parse_svg(baked)
    except CodecMismatch as e:
        raise BakingError(f"Baked SVG is not well-formed: {e}") from None

    logger.debug(f"Baked {fmt.value} badge into SVG ({len(baked)} chars)")
    return baked


# =============================================================================
# Extract
# =============================================================================

def _extract_modern(root: ET.Element) -> ExtractedBadge:
    element = root.find(BakeFormat.MODERN.qualified_name)
    if element is None:
        raise CodecMismatch("No modern badge element")
    text = (element.text or "").strip()
    if not text:
        raise CodecMismatch("Modern badge element is empty")
    return ExtractedBadge(
        assertion=_decode_payload(text),
        verification_url=element.get("verify"),
        format=BakeFormat.MODERN,
    )


def _extract_legacy(root: ET.Element) -> ExtractedBadge:
    element = root.find(BakeFormat.LEGACY.qualified_name)
    if element is None:
        raise CodecMismatch("No legacy badge element")
    url = element.get("verify")
    text = (element.text or "").strip()
    if not text and not url:
        raise CodecMismatch("Legacy badge element has neither payload nor verify URL")
    assertion = _decode_payload(text) if text else None
    return ExtractedBadge(assertion=assertion, verification_url=url, format=BakeFormat.LEGACY)


_EXTRACTORS = (
    (BakeFormat.MODERN, _extract_modern),
    (BakeFormat.LEGACY, _extract_legacy),
)


def extract_from_svg(svg: Any) -> ExtractedBadge:
    """
    Extract a baked credential from SVG text.

    Never raises for missing or unreadable badge data.

    Returns:
        ExtractedBadge; ``assertion`` and ``verification_url`` are None when
        the SVG carries no recognizable badge.
    """
    try:
        root = _parse_svg(svg)
    except CodecMismatch as e:
        logger.debug(f"Cannot extract badge: {e}")
        return ExtractedBadge()

    for fmt, extractor in _EXTRACTORS:
        try:
            return extractor(root)
        except CodecMismatch as e:
            logger.debug(f"{fmt.value} extraction failed: {e}")

    return ExtractedBadge()


def detect_format(svg: Any) -> Optional[BakeFormat]:
    """Resolve which badge shape an SVG carries, or None."""
    return extract_from_svg(svg).format


def is_baked_svg(svg: Any) -> bool:
    return extract_from_svg(svg).found


def validate_baked_svg(svg: Any) -> ValidationResult:
    """
    Validate that an SVG carries a structurally valid credential.

    Returns:
        ValidationResult; "Missing badge credential data" when no badge is
        embedded, otherwise the credential's structural errors.
    """
    try:
        _parse_svg(svg)
    except CodecMismatch:
        return ValidationResult.from_errors(["Invalid SVG content"])

    extracted = extract_from_svg(svg)
    if not extracted.found:
        return ValidationResult.from_errors(["Missing badge credential data"])

    credential, _ = _as_credential(extracted.assertion)
    return validate_credential(credential)


def _as_credential(assertion: Assertion) -> Tuple[Dict[str, Any], bool]:
    """Return (credential, came_from_jwt) for an extracted assertion."""
    if isinstance(assertion, str):
        _, payload = decode_jwt_unverified(assertion)
        return credential_from_payload(payload), True
    return assertion, False
