"""STIX 2.1 bundle parser.

Pattern extraction is a best-effort subset of the STIX patterning grammar:
only equality comparisons against the object paths in PATTERN_PATHS are
turned into indicators. Each comparison is extracted independently, so AND
and OR both yield every referenced value. Everything else (other operators,
other paths, NOT, and the temporal qualifiers WITHIN, START/STOP, REPEATS
and FOLLOWEDBY) is reported under metadata["unsupported_expressions"]
instead of being silently ignored.
"""

import logging
import re
from typing import Any, Optional

from ioc_import.detection import normalize_value
from ioc_import.errors import IOCFormatError
from ioc_import.models import CanonicalType, ParseError, ParseResult, RawIndicator, SourceFormat
from ioc_import.parsers.common import load_json_document, parse_timestamp, string_list

logger = logging.getLogger("ioc_import.stix")

COMPARISON_RE = re.compile(
    r"(?P<object>[a-z0-9][a-z0-9-]*):(?P<path>[^\s=!<>\[\]()]+?)\s*"
    r"(?P<op>!=|<=|>=|=|<|>|(?:NOT\s+)?(?:LIKE|MATCHES|IN|ISSUBSET|ISSUPERSET)\b)\s*"
    r"(?P<literal>'(?:[^'\\]|\\.)*'|\([^)]*\)|[^\s\]]+)",
    re.IGNORECASE,
)
STRING_LITERAL_RE = re.compile(r"'(?:[^'\\]|\\.)*'")
QUALIFIER_RE = re.compile(r"\b(WITHIN|START|STOP|REPEATS|FOLLOWEDBY|NOT)\b")
ESCAPE_RE = re.compile(r"\\(.)")

VALUE_PATHS = {
    "ipv4-addr": CanonicalType.IP,
    "ipv6-addr": CanonicalType.IPV6,
    "domain-name": CanonicalType.DOMAIN,
    "url": CanonicalType.URL,
    "email-addr": CanonicalType.EMAIL,
    "mac-addr": CanonicalType.MAC,
}

# Normalized hash names (upper case, no dashes) to canonical types
HASH_ALGORITHMS = {
    "SHA256": CanonicalType.SHA256,
    "SHA1": CanonicalType.SHA1,
    "MD5": CanonicalType.MD5,
    "SHA512": CanonicalType.SHA512,
    "SSDEEP": CanonicalType.SSDEEP,
}

OBSERVABLE_TYPES = set(VALUE_PATHS) | {"file", "autonomous-system"}


def _hash_type(name: str) -> Optional[CanonicalType]:
    return HASH_ALGORITHMS.get(name.strip("'\"").upper().replace("-", "").replace("_", ""))


def _resolve_path(object_type: str, path: str) -> Optional[CanonicalType]:
    """Map a `<object>:<path>` pair to a canonical type, if supported."""
    object_type = object_type.lower()
    if object_type in VALUE_PATHS and path == "value":
        return VALUE_PATHS[object_type]
    if object_type == "file":
        if path == "name":
            return CanonicalType.FILENAME
        if path.lower().startswith("hashes."):
            return _hash_type(path[len("hashes."):])
    if object_type == "autonomous-system" and path == "number":
        return CanonicalType.ASN
    return None


def _literal_value(literal: str) -> str:
    if literal.startswith("'") and literal.endswith("'"):
        return ESCAPE_RE.sub(r"\1", literal[1:-1])
    return literal


def extract_pattern(pattern: str) -> tuple[list[tuple[CanonicalType, str]], list[str]]:
    """
    Extract supported equality comparisons from a STIX pattern.

    Returns:
        Tuple of (extracted (type, value) pairs in pattern order,
        unsupported sub-expressions)
    """
    extracted: list[tuple[CanonicalType, str]] = []
    unsupported: list[str] = []

    for match in COMPARISON_RE.finditer(pattern):
        ioc_type = _resolve_path(match.group("object"), match.group("path"))
        operator = match.group("op").strip()
        if ioc_type is None or operator != "=":
            unsupported.append(match.group(0))
            continue
        value = _literal_value(match.group("literal"))
        if ioc_type == CanonicalType.ASN and value.isdigit():
            value = f"AS{value}"
        extracted.append((ioc_type, value))

    # Comparisons already reported (NOT LIKE etc.) must not yield a second NOT
    remainder = STRING_LITERAL_RE.sub("''", COMPARISON_RE.sub(" ", pattern))
    for qualifier in QUALIFIER_RE.findall(remainder):
        unsupported.append(qualifier)

    return extracted, unsupported


def _observable_values(obj: dict[str, Any]) -> list[tuple[CanonicalType, str]]:
    """Values carried directly by a cyber-observable object."""
    obj_type = obj.get("type")
    if obj_type == "file":
        values = []
        hashes = obj.get("hashes")
        if isinstance(hashes, dict):
            for name, digest in hashes.items():
                ioc_type = _hash_type(str(name))
                if ioc_type is not None and digest:
                    values.append((ioc_type, str(digest)))
        if not values and obj.get("name"):
            values.append((CanonicalType.FILENAME, str(obj["name"])))
        return values
    if obj_type == "autonomous-system":
        number = obj.get("number")
        return [(CanonicalType.ASN, f"AS{number}")] if number not in (None, "") else []
    value = obj.get("value")
    return [(VALUE_PATHS[obj_type], str(value))] if value else []


def parse_stix(bundle: Any) -> ParseResult:
    """
    Parse a STIX 2.1 bundle into raw indicators.

    Args:
        bundle: Decoded bundle dict or its JSON text

    Returns:
        ParseResult for the bundle

    Raises:
        IOCFormatError: If the JSON is invalid or `objects` is not a list
    """
    data = load_json_document(bundle, "STIX")
    objects = data.get("objects")
    if not isinstance(objects, list):
        raise IOCFormatError("Invalid STIX bundle: missing objects array")

    result = ParseResult(format=SourceFormat.STIX)
    unsupported_expressions: list[dict[str, str]] = []
    skipped = 0

    object_index: dict[str, dict[str, Any]] = {
        obj["id"]: obj for obj in objects if isinstance(obj, dict) and isinstance(obj.get("id"), str)
    }

    def add(ioc_type: CanonicalType, raw_value: str, ref: Optional[str], **extra: Any) -> None:
        value = normalize_value(raw_value, ioc_type)
        if not value:
            result.errors.append(ParseError(value=raw_value, error="Empty IOC value"))
            return
        result.iocs.append(
            RawIndicator(
                value=value,
                type=ioc_type,
                source_format=SourceFormat.STIX,
                origin_ref=ref,
                original=raw_value,
                **extra,
            )
        )

    for obj in objects:
        if not isinstance(obj, dict) or not isinstance(obj.get("type"), str):
            skipped += 1
            continue
        obj_type = obj["type"]
        obj_id = obj.get("id") if isinstance(obj.get("id"), str) else None

        if obj_type == "indicator":
            pattern_type = obj.get("pattern_type", "stix")
            if pattern_type != "stix":
                logger.debug(f"Skipping {obj_id}: pattern_type {pattern_type!r}")
                skipped += 1
                continue
            pattern = obj.get("pattern")
            if not pattern or not isinstance(pattern, str):
                result.errors.append(
                    ParseError(value=str(obj_id), error="Indicator has no pattern")
                )
                continue

            extracted, unsupported = extract_pattern(pattern)
            for expression in unsupported:
                unsupported_expressions.append({"id": str(obj_id), "expression": expression})
            if not extracted:
                result.errors.append(
                    ParseError(value=pattern, error="No supported comparison in STIX pattern")
                )
                continue

            creator_ref = obj.get("created_by_ref")
            creator = object_index.get(creator_ref, {}) if isinstance(creator_ref, str) else {}
            context = {
                "pattern": pattern,
                "indicator_types": list(string_list(obj.get("indicator_types"))),
                "external_references": obj.get("external_references") or [],
            }
            if creator.get("name"):
                context["created_by"] = creator["name"]

            for ioc_type, raw_value in extracted:
                add(
                    ioc_type,
                    raw_value,
                    obj_id,
                    name=obj.get("name"),
                    description=obj.get("description"),
                    confidence=obj.get("confidence"),
                    valid_from=parse_timestamp(obj.get("valid_from")),
                    valid_until=parse_timestamp(obj.get("valid_until")),
                    labels=string_list(obj.get("labels")),
                    context=dict(context),
                )

        elif obj_type in OBSERVABLE_TYPES:
            values = _observable_values(obj)
            if not values:
                result.errors.append(
                    ParseError(value=str(obj_id), error=f"{obj_type} observable has no value")
                )
                continue
            for ioc_type, raw_value in values:
                add(ioc_type, raw_value, obj_id, labels=string_list(obj.get("labels")))

    result.metadata.update(
        {
            "id": data.get("id"),
            "created": data.get("created"),
            "spec_version": data.get("spec_version"),
            "object_count": len(objects),
            "skipped_objects": skipped,
            "unsupported_expressions": unsupported_expressions,
        }
    )
    logger.info(
        f"Parsed STIX bundle {data.get('id')}: {len(result.iocs)} IOCs, "
        f"{len(result.errors)} errors from {len(objects)} objects"
    )
    return result
