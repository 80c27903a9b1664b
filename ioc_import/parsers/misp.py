"""MISP JSON export parser."""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import validators

from ioc_import.detection import normalize_value
from ioc_import.errors import IOCFormatError
from ioc_import.models import CanonicalType, ParseError, ParseResult, RawIndicator, SourceFormat
from ioc_import.parsers.common import load_json_document, parse_timestamp

logger = logging.getLogger("ioc_import.misp")

# MISP attribute type mapping. Composite types keep their trailing segment.
MISP_TYPE_MAP = {
    "ip-src": CanonicalType.IP,
    "ip-dst": CanonicalType.IP,
    "domain": CanonicalType.DOMAIN,
    "hostname": CanonicalType.DOMAIN,
    "url": CanonicalType.URL,
    "link": CanonicalType.URL,
    "uri": CanonicalType.URL,
    "md5": CanonicalType.MD5,
    "sha1": CanonicalType.SHA1,
    "sha256": CanonicalType.SHA256,
    "sha512": CanonicalType.SHA512,
    "ssdeep": CanonicalType.SSDEEP,
    "email": CanonicalType.EMAIL,
    "email-src": CanonicalType.EMAIL,
    "email-dst": CanonicalType.EMAIL,
    "filename": CanonicalType.FILENAME,
    "mac-address": CanonicalType.MAC,
    "AS": CanonicalType.ASN,
    "filename|md5": CanonicalType.MD5,
    "filename|sha1": CanonicalType.SHA1,
    "filename|sha256": CanonicalType.SHA256,
    "filename|sha512": CanonicalType.SHA512,
    "domain|ip": CanonicalType.IP,
}


@dataclass
class SingleEvent:
    """A document with a top-level `Event`."""

    event: dict[str, Any]


@dataclass
class EventList:
    """A REST search export: `response: [{Event: ...}, ...]`."""

    events: list[dict[str, Any]]
    skipped: int = 0


MispInput = Union[SingleEvent, EventList]


def resolve_misp_input(data: dict[str, Any]) -> MispInput:
    """
    Resolve the two supported MISP export shapes once, up front.

    Raises:
        IOCFormatError: If neither `Event` nor a `response` list is present
    """
    if isinstance(data.get("Event"), dict):
        return SingleEvent(event=data["Event"])

    response = data.get("response")
    if isinstance(response, list):
        events = []
        skipped = 0
        for entry in response:
            event = entry.get("Event") if isinstance(entry, dict) else None
            if isinstance(event, dict):
                events.append(event)
            else:
                skipped += 1
        return EventList(events=events, skipped=skipped)

    raise IOCFormatError("Invalid MISP document: expected 'Event' or 'response' list")


def normalize_to_ids(value: Any) -> bool:
    """MISP sends to_ids as a bool, an int, or a "0"/"1" string."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return False


def _split_composite(attr_type: str, value: str) -> tuple[str, Optional[str]]:
    """Return (indicator value, leading part) for `a|b` composite attributes."""
    if "|" not in attr_type:
        return value, None
    parts = value.split("|")
    return parts[-1], "|".join(parts[:-1]) or None


def _attribute_to_indicator(
    attr: dict[str, Any], object_name: Optional[str]
) -> Union[RawIndicator, ParseError, None]:
    """
    Convert one MISP attribute.

    Returns None for attribute types with no IOC meaning.
    """
    attr_type = str(attr.get("type", ""))
    ioc_type = MISP_TYPE_MAP.get(attr_type)
    if ioc_type is None:
        return None

    raw_value = str(attr.get("value") or "")
    value, leading = _split_composite(attr_type, raw_value)
    value = normalize_value(value, ioc_type)
    if not value:
        return ParseError(value=raw_value, error=f"Empty value for MISP {attr_type} attribute")

    if ioc_type == CanonicalType.IP and validators.ipv6(value, cidr=False):
        ioc_type = CanonicalType.IPV6

    context: dict[str, Any] = {
        "category": attr.get("category"),
        "comment": attr.get("comment"),
        "to_ids": normalize_to_ids(attr.get("to_ids")),
        "timestamp": parse_timestamp(attr.get("timestamp")),
        "misp_type": attr_type,
    }
    if leading:
        context["domain" if attr_type == "domain|ip" else "filename"] = leading
    if object_name:
        context["object_name"] = object_name

    tags = tuple(
        str(tag["name"]) for tag in attr.get("Tag") or [] if isinstance(tag, dict) and tag.get("name")
    )

    return RawIndicator(
        value=value,
        type=ioc_type,
        source_format=SourceFormat.MISP,
        origin_ref=attr.get("uuid"),
        tags=tags,
        valid_from=parse_timestamp(attr.get("first_seen")),
        valid_until=parse_timestamp(attr.get("last_seen")),
        description=attr.get("comment") or None,
        original=raw_value,
        context=context,
    )


def _event_attributes(event: dict[str, Any]):
    """Yield (attribute, object_name) for flat and object-scoped attributes."""
    for attr in event.get("Attribute") or []:
        if isinstance(attr, dict):
            yield attr, None
    for obj in event.get("Object") or []:
        if not isinstance(obj, dict):
            continue
        for attr in obj.get("Attribute") or []:
            if isinstance(attr, dict):
                yield attr, obj.get("name")


def parse_misp(document: Any) -> ParseResult:
    """
    Parse a MISP JSON export (single event or search response).

    Args:
        document: Decoded dict or JSON text

    Returns:
        ParseResult covering every mapped attribute

    Raises:
        IOCFormatError: If the document has neither shape
    """
    misp_input = resolve_misp_input(load_json_document(document, "MISP"))
    if isinstance(misp_input, SingleEvent):
        events = [misp_input.event]
        skipped_entries = 0
    else:
        events = misp_input.events
        skipped_entries = misp_input.skipped

    result = ParseResult(format=SourceFormat.MISP)
    skipped_attributes = 0
    event_summaries = []

    for event in events:
        orgc = event.get("Orgc") if isinstance(event.get("Orgc"), dict) else {}
        event_summaries.append(
            {"id": event.get("id"), "info": event.get("info"), "org": orgc.get("name")}
        )

        for attr, object_name in _event_attributes(event):
            converted = _attribute_to_indicator(attr, object_name)
            if converted is None:
                skipped_attributes += 1
                logger.debug(f"Skipping unmapped MISP attribute type {attr.get('type')!r}")
            elif isinstance(converted, ParseError):
                result.errors.append(converted)
            else:
                result.iocs.append(converted)

    result.metadata.update(
        {
            "event_count": len(events),
            "events": event_summaries,
            "skipped_attributes": skipped_attributes,
            "skipped_entries": skipped_entries,
        }
    )
    if event_summaries:
        last = event_summaries[-1]
        result.metadata.update(
            {"event_id": last["id"], "event_info": last["info"], "org": last["org"]}
        )

    logger.info(
        f"Parsed MISP export: {len(result.iocs)} IOCs, {len(result.errors)} errors "
        f"from {len(events)} events ({skipped_attributes} attributes skipped)"
    )
    return result
