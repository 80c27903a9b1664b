"""Format sniffing and dispatch to the format-specific IOC parsers."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Union

from ioc_import.errors import IOCFormatError
from ioc_import.models import ParseResult
from ioc_import.parsers.csv_parser import parse_csv
from ioc_import.parsers.freetext import parse_free_text
from ioc_import.parsers.misp import parse_misp
from ioc_import.parsers.openioc import parse_openioc
from ioc_import.parsers.stix import parse_stix

logger = logging.getLogger("ioc_import.parser")

OPENIOC_MARKER_RE = re.compile(r"<ioc\b|<OpenIOC\b")

Parser = Callable[[Any], ParseResult]

__all__ = ["detect_format", "parse_free_text", "parse_ioc_file", "read_ioc_file"]


def detect_format(content: Union[str, dict], filename: str = "") -> tuple[Parser, Any]:
    """
    Pick the parser for a document.

    Returns:
        Tuple of (parser, payload to hand it); JSON text is decoded here

    Raises:
        IOCFormatError: On undecodable JSON or an unrecognized JSON shape
    """
    name = (filename or "").lower()
    text = content if isinstance(content, str) else None

    if name.endswith(".xml") or (text is not None and OPENIOC_MARKER_RE.search(text)):
        return parse_openioc, text if text is not None else json.dumps(content)

    if name.endswith(".csv") and text is not None:
        return parse_csv, text

    if text is not None:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise IOCFormatError(f"Failed to parse IOC file: {e}") from e
    else:
        data = content

    if isinstance(data, dict):
        spec_version = data.get("spec_version")
        if data.get("type") == "bundle" or (
            isinstance(spec_version, str) and spec_version.startswith("2.")
        ):
            return parse_stix, data
        if "Event" in data or "response" in data:
            return parse_misp, data

    raise IOCFormatError("Failed to parse IOC file: Unknown JSON format")


def parse_ioc_file(content: Union[str, dict], filename: str = "") -> ParseResult:
    """
    Parse a STIX, MISP, OpenIOC or CSV document.

    Free text is never a fallback here; use parse_free_text for pasted input.

    Args:
        content: Raw file text or an already-decoded JSON object
        filename: Original filename, used for extension sniffing

    Returns:
        ParseResult from the selected parser

    Raises:
        IOCFormatError: If the top-level structure is unrecognized or corrupt
    """
    parser, payload = detect_format(content, filename)
    try:
        result = parser(payload)
    except IOCFormatError as e:
        raise IOCFormatError(f"Failed to parse IOC file: {e}") from e

    logger.info(
        f"Parsed {filename or 'content'} as {result.format.value}: "
        f"{len(result.iocs)} IOCs, {len(result.errors)} errors"
    )
    return result


def read_ioc_file(file_path: str) -> str:
    """
    Read an IOC file from disk.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"IOC file not found: {file_path}")
    return path.read_text(encoding="utf-8")
