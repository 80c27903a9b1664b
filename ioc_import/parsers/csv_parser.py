"""Headered CSV IOC parser."""

import csv
import io
import logging
from typing import Optional

from ioc_import.detection import detect_ioc_type, normalize_value, resolve_type_name
from ioc_import.models import ParseError, ParseResult, RawIndicator, SourceFormat

logger = logging.getLogger("ioc_import.csv")

COLUMN_ALIASES = {
    "value": ("value", "ioc", "indicator", "observable"),
    "type": ("type", "ioc_type", "indicator_type"),
    "threat": ("threat", "threat_type", "category"),
    "description": ("description", "notes", "comment"),
    "tags": ("tags", "labels"),
}


def _column_index(headers: list[str], field_name: str) -> Optional[int]:
    for alias in COLUMN_ALIASES[field_name]:
        if alias in headers:
            return headers.index(alias)
    return None


def _cell(row: list[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def parse_csv(text: str) -> ParseResult:
    """
    Parse a CSV export with a header row.

    The value column defaults to the first column. A non-empty type column
    overrides auto-detection.
    """
    result = ParseResult(format=SourceFormat.CSV)
    reader = csv.reader(io.StringIO(text or ""))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        result.metadata["row_count"] = 0
        return result

    headers = [h.strip().lower() for h in rows[0]]
    value_col = _column_index(headers, "value")
    if value_col is None:
        value_col = 0
    type_col = _column_index(headers, "type")
    threat_col = _column_index(headers, "threat")
    desc_col = _column_index(headers, "description")
    tags_col = _column_index(headers, "tags")

    for row in rows[1:]:
        raw_value = _cell(row, value_col)
        if not raw_value:
            continue
        type_name = _cell(row, type_col)

        if type_name:
            ioc_type = resolve_type_name(type_name)
            if ioc_type is None:
                result.errors.append(
                    ParseError(value=raw_value, error=f"Unknown IOC type '{type_name}'")
                )
                continue
            value = normalize_value(raw_value, ioc_type)
        else:
            value = normalize_value(raw_value)
            ioc_type = detect_ioc_type(value)
            if ioc_type is None:
                result.errors.append(ParseError(value=raw_value, error="Unable to detect IOC type"))
                continue

        if not value:
            result.errors.append(ParseError(value=raw_value, error="Empty IOC value"))
            continue

        tags = tuple(t.strip() for t in _cell(row, tags_col).split(";") if t.strip())
        result.iocs.append(
            RawIndicator(
                value=value,
                type=ioc_type,
                source_format=SourceFormat.CSV,
                tags=tags,
                description=_cell(row, desc_col) or None,
                original=raw_value,
                context={"threat_type": _cell(row, threat_col) or None},
            )
        )

    result.metadata["row_count"] = len(rows) - 1
    logger.info(
        f"Parsed CSV: {len(result.iocs)} IOCs, {len(result.errors)} errors "
        f"from {len(rows) - 1} rows"
    )
    return result
