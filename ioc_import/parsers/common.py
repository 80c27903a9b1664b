"""Helpers shared by the structured-format parsers."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from ioc_import.errors import IOCFormatError

logger = logging.getLogger("ioc_import.parsers")


def load_json_document(document: Any, format_name: str) -> dict[str, Any]:
    """Accept a decoded dict or a JSON string; anything else is a structural error."""
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as e:
            raise IOCFormatError(f"Invalid {format_name} JSON: {e}") from e
    if not isinstance(document, dict):
        raise IOCFormatError(f"Invalid {format_name} document: expected a JSON object")
    return document


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string or epoch seconds into an aware datetime.

    Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError):
        logger.debug(f"Ignoring unparseable timestamp {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def string_list(value: Any) -> tuple[str, ...]:
    """Coerce a JSON list (or single string) into a tuple of strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v is not None and str(v) != "")
    return ()
