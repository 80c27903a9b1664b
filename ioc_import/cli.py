"""CLI entrypoint for the IOC import pipeline."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from ioc_import.config import ImportConfig, load_config
from ioc_import.enrichment.internetdb import InternetDBClient
from ioc_import.errors import IOCFormatError
from ioc_import.importer import import_ioc_file, import_iocs
from ioc_import.logging_setup import setup_logging
from ioc_import.models import ImportOptions, ImportResult, ParseResult
from ioc_import.parser import parse_free_text, parse_ioc_file, read_ioc_file
from ioc_import.store.base import IndicatorStore
from ioc_import.store.csv_store import CsvIndicatorStore
from ioc_import.store.memory import MemoryIndicatorStore

logger = logging.getLogger("ioc_import.cli")

EXIT_FILE_NOT_FOUND = 2
EXIT_FORMAT_ERROR = 3


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


def summarize_parse(result: ParseResult) -> dict[str, Any]:
    """Build the JSON-friendly summary of a parse."""
    return {
        "format": result.format.value,
        "ioc_count": len(result.iocs),
        "error_count": len(result.errors),
        "iocs": [
            {
                "type": ioc.type.value if ioc.type else None,
                "value": ioc.value,
                "origin_ref": ioc.origin_ref,
            }
            for ioc in result.iocs
        ],
        "errors": [{"value": e.value, "error": e.error} for e in result.errors],
        "metadata": result.metadata,
    }


def _config_from_args(args: argparse.Namespace) -> ImportConfig:
    """Load env config and apply command-line overrides."""
    config = load_config()
    if getattr(args, "workers", None) is not None:
        if args.workers < 1:
            raise ValueError(f"Invalid --workers: {args.workers}. Must be at least 1")
        config.import_workers = args.workers
    if getattr(args, "deadline", None) is not None:
        if args.deadline <= 0:
            raise ValueError(f"Invalid --deadline: {args.deadline}. Must be greater than zero")
        config.import_deadline_seconds = args.deadline
    return config


def _build_store(store_path: Optional[str]) -> IndicatorStore:
    if store_path:
        return CsvIndicatorStore(store_path)
    logger.info("No --store given, importing into an in-memory store (dry run)")
    return MemoryIndicatorStore()


async def parse_command(args: argparse.Namespace) -> int:
    """
    Execute the parse command: detect the format and print what was found.

    Returns:
        Exit code (0 = success, 2 = file not found, 3 = unparseable document).
    """
    try:
        content = read_ioc_file(args.ioc_file)
        result = parse_ioc_file(content, args.ioc_file)
    except FileNotFoundError as e:
        logger.error(str(e))
        return EXIT_FILE_NOT_FOUND
    except IOCFormatError as e:
        logger.error(str(e))
        return EXIT_FORMAT_ERROR

    _print_json(summarize_parse(result))
    return 0


async def freetext_command(args: argparse.Namespace) -> int:
    """Execute the freetext command: one candidate per line or separator."""
    try:
        content = read_ioc_file(args.ioc_file)
    except FileNotFoundError as e:
        logger.error(str(e))
        return EXIT_FILE_NOT_FOUND

    _print_json(summarize_parse(parse_free_text(content)))
    return 0


async def import_command(args: argparse.Namespace) -> int:
    """
    Execute the import command.

    Parses the file (as free text with --text, otherwise by format
    detection) and imports every indicator into the chosen store. With
    --auto-enrich, IPs are looked up through the host intelligence client.

    Returns:
        Exit code (0 = success, 2 = file not found, 3 = unparseable document).
    """
    config = _config_from_args(args)

    try:
        content = read_ioc_file(args.ioc_file)
    except FileNotFoundError as e:
        logger.error(str(e))
        return EXIT_FILE_NOT_FOUND

    options = ImportOptions(
        source=args.source,
        tags=list(args.tag or []),
        auto_enrich=args.auto_enrich,
    )
    store = _build_store(args.store)
    host_intel = InternetDBClient.from_config(config) if args.auto_enrich else None

    try:
        if args.text:
            parsed = parse_free_text(content)
            if parsed.errors:
                logger.warning(f"{len(parsed.errors)} lines could not be parsed as IOCs")
            result: ImportResult = await import_iocs(
                parsed.iocs, store, options, config, host_intel
            )
            result.format = parsed.format.value
            result.metadata = dict(parsed.metadata)
        else:
            result = await import_ioc_file(
                content, args.ioc_file, store, options, config, host_intel
            )
    except IOCFormatError as e:
        logger.error(str(e))
        return EXIT_FORMAT_ERROR
    finally:
        if host_intel is not None:
            await host_intel.close()
        await store.close()

    if result.timed_out:
        logger.warning(f"Import timed out with {result.unprocessed} IOCs unprocessed")

    _print_json(result.to_dict())
    return 0


COMMANDS = {
    "parse": parse_command,
    "freetext": freetext_command,
    "import": import_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="IOC import and normalization pipeline")
    parser.add_argument(
        "command",
        choices=sorted(COMMANDS),
        help="Command to run",
    )
    parser.add_argument("ioc_file", help="Path to IOC input file")
    parser.add_argument(
        "--text",
        action="store_true",
        help="Treat the file as analyst free text (import only)",
    )
    parser.add_argument(
        "--source",
        type=str,
        default=None,
        help="Import source label (default: import_<format>, or 'import' for free text)",
    )
    parser.add_argument(
        "--tag",
        action="append",
        default=[],
        help="Tag added to every imported IOC; repeatable",
    )
    parser.add_argument(
        "--auto-enrich",
        action="store_true",
        help="Enrich IOCs while importing",
    )
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        help="Path to the CSV inventory store (default: in-memory dry run)",
    )
    parser.add_argument("--workers", type=int, default=None, help="Concurrent import workers")
    parser.add_argument("--deadline", type=float, default=None, help="Import deadline in seconds")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        exit_code = asyncio.run(COMMANDS[args.command](args))
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
