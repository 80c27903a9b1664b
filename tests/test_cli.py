"""Tests for CLI commands."""

import argparse
import csv
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ioc_import.cli import build_parser, import_command, main, parse_command


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _run(argv, capsys):
    """Run the CLI and return (exit code, decoded stdout or None)."""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    out = capsys.readouterr().out
    return exc_info.value.code, json.loads(out) if out.strip() else None


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep CLI runs independent of the caller's environment."""
    for name in ("IOC_IMPORT_WORKERS", "IOC_IMPORT_DEADLINE_SECONDS", "IOC_IMPORT_DEFAULT_SOURCE"):
        monkeypatch.delenv(name, raising=False)


class TestBuildParser:
    """Tests for argument parsing."""

    def test_import_options(self):
        """Test import flags are parsed."""
        args = build_parser().parse_args(
            ["import", "feed.json", "--tag", "apt", "--tag", "tlp:amber", "--workers", "2",
             "--deadline", "5", "--auto-enrich", "--store", "out.csv"]
        )

        assert args.command == "import"
        assert args.tag == ["apt", "tlp:amber"]
        assert args.workers == 2
        assert args.deadline == 5.0
        assert args.auto_enrich is True
        assert args.store == "out.csv"

    def test_unknown_command(self):
        """Test unknown commands are rejected by argparse."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["publish", "x"])


class TestParseCommand:
    """Tests for the parse command."""

    def test_parse_stix(self, stix_file, capsys):
        """Test parse prints the detected format and indicators."""
        code, out = _run(["parse", stix_file], capsys)

        assert code == 0
        assert out["format"] == "stix"
        assert out["ioc_count"] == 4
        assert out["iocs"][0]["type"] == "sha256"

    def test_missing_file(self, capsys):
        """Test exit code 2 for a missing file."""
        code, out = _run(["parse", "/nonexistent/feed.json"], capsys)

        assert code == 2
        assert out is None

    def test_unknown_format(self, tmp_path, capsys):
        """Test exit code 3 for an unrecognized document."""
        f = tmp_path / "data.json"
        f.write_text('{"hello": "world"}')

        code, _ = _run(["parse", str(f)], capsys)
        assert code == 3

    @pytest.mark.asyncio
    async def test_parse_command_direct(self, stix_file, capsys):
        """Test the coroutine can be awaited directly."""
        args = argparse.Namespace(ioc_file=stix_file)
        assert await parse_command(args) == 0
        assert json.loads(capsys.readouterr().out)["format"] == "stix"


class TestFreetextCommand:
    """Tests for the freetext command."""

    def test_freetext(self, free_text_file, capsys):
        """Test free text parsing output."""
        code, out = _run(["freetext", free_text_file], capsys)

        assert code == 0
        assert out["format"] == "freetext"
        assert [i["value"] for i in out["iocs"]] == [
            "192.168.1.1",
            "example.com",
            "http://bad.site/x",
            "d41d8cd98f00b204e9800998ecf8427e",
        ]
        assert out["error_count"] == 0


class TestImportCommand:
    """Tests for the import command."""

    def test_dry_run(self, stix_file, capsys):
        """Test import without --store uses the in-memory store."""
        code, out = _run(["import", stix_file, "--workers", "1"], capsys)

        assert code == 0
        assert out["total"] == 4
        assert out["imported"] == 4
        assert out["format"] == "stix"
        assert out["timed_out"] is False

    def test_free_text_into_csv_store(self, free_text_file, tmp_path, capsys):
        """Test --text imports into the CSV inventory and re-runs are duplicates."""
        store = tmp_path / "inventory.csv"
        argv = ["import", free_text_file, "--text", "--store", str(store), "--tag", "triage"]

        code, first = _run(argv, capsys)
        assert code == 0
        assert first["imported"] == 4

        code, second = _run(argv, capsys)
        assert second["imported"] == 0
        assert second["duplicates"] == 4

        with store.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 4
        assert {r["import_source"] for r in rows} == {"import"}
        assert {r["tags"] for r in rows} == {"triage"}

    def test_invalid_workers(self, stix_file, capsys):
        """Test a non-positive --workers is a configuration error."""
        code, _ = _run(["import", stix_file, "--workers", "0"], capsys)
        assert code == 1

    @pytest.mark.asyncio
    async def test_auto_enrich_closes_client(self, stix_file, capsys):
        """Test the host intel client is built from config and closed afterwards."""
        client = MagicMock()
        client.name = "internetdb"
        client.lookup = AsyncMock(side_effect=Exception("offline"))
        client.close = AsyncMock()
        args = build_parser().parse_args(["import", stix_file, "--auto-enrich"])

        with patch("ioc_import.cli.InternetDBClient.from_config", return_value=client):
            code = await import_command(args)

        assert code == 0
        client.close.assert_awaited_once()
        out = json.loads(capsys.readouterr().out)
        assert out["imported"] == 4
