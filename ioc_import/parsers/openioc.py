"""OpenIOC XML parser.

This is a tolerant regex scan over the document text, not a conformant
XML parser. It reads flat <IndicatorItem> elements only; items whose
Context does not map to a canonical type (process, registry, ...) are
skipped.
"""

import logging
import re
from typing import Optional
from xml.sax.saxutils import unescape

from ioc_import.detection import normalize_value
from ioc_import.errors import IOCFormatError
from ioc_import.models import CanonicalType, ParseResult, RawIndicator, SourceFormat

logger = logging.getLogger("ioc_import.openioc")

MARKER_RE = re.compile(r"<(?:\w+:)?(?:ioc|OpenIOC|IndicatorItem)\b", re.IGNORECASE)
ITEM_RE = re.compile(
    r"<(?:\w+:)?IndicatorItem\b(?P<attrs>[^>]*)>(?P<body>.*?)</(?:\w+:)?IndicatorItem>",
    re.IGNORECASE | re.DOTALL,
)
CONTEXT_RE = re.compile(r"<(?:\w+:)?Context\b(?P<attrs>[^>]*?)/?>", re.IGNORECASE)
CONTENT_RE = re.compile(
    r"<(?:\w+:)?Content\b[^>]*>(?P<text>.*?)</(?:\w+:)?Content>", re.IGNORECASE | re.DOTALL
)
ATTR_RE = re.compile(r"(?P<name>[\w:-]+)\s*=\s*(?P<quote>[\"'])(?P<value>.*?)(?P=quote)", re.DOTALL)
IOC_ID_RE = re.compile(r"<(?:\w+:)?ioc\b[^>]*?\bid=[\"'](?P<id>[^\"']+)[\"']", re.IGNORECASE)
SHORT_DESCRIPTION_RE = re.compile(
    r"<(?:\w+:)?short_description>(?P<text>.*?)</(?:\w+:)?short_description>",
    re.IGNORECASE | re.DOTALL,
)


def _attributes(text: str) -> dict[str, str]:
    return {m.group("name").lower(): unescape(m.group("value")) for m in ATTR_RE.finditer(text)}


def map_context(document: str, search: str) -> Optional[CanonicalType]:
    """Infer the canonical type from an IndicatorItem's Context pair."""
    lowered = search.lower()
    if "md5" in lowered:
        return CanonicalType.MD5
    if "sha1" in lowered:
        return CanonicalType.SHA1
    if "sha256" in lowered:
        return CanonicalType.SHA256
    if "Network" in document and "IP" in search:
        return CanonicalType.IP
    if "Network" in document and "DNS" in search:
        return CanonicalType.DOMAIN
    if "URI" in search or "URL" in search:
        return CanonicalType.URL
    if search == "PortItem/remoteIP":
        return CanonicalType.IP
    if search == "DnsEntryItem/Host":
        return CanonicalType.DOMAIN
    return None


def parse_openioc(xml_text: str) -> ParseResult:
    """
    Extract indicators from an OpenIOC document.

    Args:
        xml_text: Raw XML text

    Returns:
        ParseResult; unmappable or empty items are counted in
        metadata["skipped_items"]

    Raises:
        IOCFormatError: If the text has no OpenIOC markers at all
    """
    if not isinstance(xml_text, str) or not MARKER_RE.search(xml_text):
        raise IOCFormatError("Invalid OpenIOC document: no <ioc> or <IndicatorItem> elements")

    result = ParseResult(format=SourceFormat.OPENIOC)
    item_count = 0
    skipped = 0

    for item in ITEM_RE.finditer(xml_text):
        item_count += 1
        body = item.group("body")
        context_match = CONTEXT_RE.search(body)
        content_match = CONTENT_RE.search(body)
        if context_match is None or content_match is None:
            skipped += 1
            continue

        context = _attributes(context_match.group("attrs"))
        document = context.get("document", "")
        search = context.get("search", "")
        ioc_type = map_context(document, search)
        raw_value = unescape(content_match.group("text")).strip()

        if ioc_type is None or not raw_value:
            logger.debug(f"Skipping OpenIOC item {document}/{search}")
            skipped += 1
            continue

        value = normalize_value(raw_value, ioc_type)
        if not value:
            skipped += 1
            continue

        item_attrs = _attributes(item.group("attrs"))
        result.iocs.append(
            RawIndicator(
                value=value,
                type=ioc_type,
                source_format=SourceFormat.OPENIOC,
                origin_ref=f"{document}/{search}",
                original=raw_value,
                context={
                    "openioc_context": f"{document}/{search}",
                    "item_id": item_attrs.get("id"),
                    "condition": item_attrs.get("condition"),
                },
            )
        )

    ioc_id = IOC_ID_RE.search(xml_text)
    short_description = SHORT_DESCRIPTION_RE.search(xml_text)
    result.metadata.update(
        {
            "id": ioc_id.group("id") if ioc_id else None,
            "short_description": (
                unescape(short_description.group("text")).strip() if short_description else None
            ),
            "item_count": item_count,
            "skipped_items": skipped,
        }
    )
    logger.info(
        f"Parsed OpenIOC document: {len(result.iocs)} IOCs from {item_count} items "
        f"({skipped} skipped)"
    )
    return result
