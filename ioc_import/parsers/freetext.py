"""Free-text IOC parser for analyst-pasted input."""

import logging
import re

from ioc_import.detection import detect_ioc_type, normalize_value, resolve_type_name
from ioc_import.models import ParseError, ParseResult, RawIndicator, SourceFormat

logger = logging.getLogger("ioc_import.freetext")

SPLIT_RE = re.compile(r"[\n\r,;]+")
COMMENT_PREFIXES = ("#", "//")


def split_candidates(text: str) -> list[str]:
    """Split pasted text into trimmed, non-empty, non-comment lines."""
    lines = []
    for chunk in SPLIT_RE.split(text):
        line = chunk.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        lines.append(line)
    return lines


def parse_free_text(text: str) -> ParseResult:
    """
    Parse newline/comma/semicolon separated indicators.

    A line of the form `value|type` uses the explicit type instead of
    auto-detection. Lines whose type cannot be determined are reported as
    errors rather than dropped.

    Args:
        text: Raw pasted text

    Returns:
        ParseResult with one entry in iocs or errors per candidate line
    """
    result = ParseResult(format=SourceFormat.FREETEXT)
    lines = split_candidates(text or "")

    for line in lines:
        explicit_name = None
        value = line
        if "|" in line:
            value, _, explicit_name = line.partition("|")
            explicit_name = explicit_name.strip().lower()

        if explicit_name:
            ioc_type = resolve_type_name(explicit_name)
            if ioc_type is None:
                result.errors.append(
                    ParseError(value=line, error=f"Unknown IOC type '{explicit_name}'")
                )
                continue
            value = normalize_value(value, ioc_type)
        else:
            value = normalize_value(value)
            ioc_type = detect_ioc_type(value)

        if not value:
            result.errors.append(ParseError(value=line, error="Empty IOC value"))
            continue
        if ioc_type is None:
            result.errors.append(ParseError(value=line, error="Unable to detect IOC type"))
            continue

        result.iocs.append(
            RawIndicator(
                value=value,
                type=ioc_type,
                source_format=SourceFormat.FREETEXT,
                original=line,
            )
        )

    result.metadata["line_count"] = len(lines)
    logger.info(
        f"Parsed free text: {len(result.iocs)} IOCs, {len(result.errors)} errors "
        f"from {len(lines)} lines"
    )
    return result
