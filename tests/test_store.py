"""Tests for indicator stores."""

import csv
import json
from datetime import datetime, timezone

import pytest

from ioc_import.models import CanonicalRecord, CanonicalType, UpsertOutcome
from ioc_import.store.csv_store import INVENTORY_CSV_HEADER, CsvIndicatorStore
from ioc_import.store.memory import MemoryIndicatorStore


def _record(value="evil.com", ioc_type=CanonicalType.DOMAIN, **kwargs):
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    return CanonicalRecord(
        type=ioc_type,
        value=value,
        import_source="import_stix",
        first_seen=now,
        last_seen=now,
        **kwargs,
    )


class TestMemoryIndicatorStore:
    """Tests for MemoryIndicatorStore."""

    @pytest.mark.asyncio
    async def test_insert_then_duplicate(self):
        """Test the second upsert of a key is a duplicate."""
        store = MemoryIndicatorStore()
        record = _record()

        first = await store.upsert(record.key, record)
        second = await store.upsert(record.key, record)

        assert first.outcome == UpsertOutcome.INSERTED
        assert second.outcome == UpsertOutcome.DUPLICATE
        assert len(store) == 1


class TestCsvIndicatorStore:
    """Tests for CsvIndicatorStore."""

    @pytest.mark.asyncio
    async def test_creates_file_with_header(self, tmp_path):
        """Test the first insert writes the header and the row."""
        path = tmp_path / "inventory" / "iocs.csv"
        store = CsvIndicatorStore(str(path))
        record = _record(tags=["apt", "c2"], enrichment={"enriched": True, "tld": "com"})

        response = await store.upsert(record.key, record)

        assert response.outcome == UpsertOutcome.INSERTED
        with path.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert list(rows[0].keys()) == INVENTORY_CSV_HEADER
        assert rows[0]["ioc_type"] == "domain"
        assert rows[0]["ioc_value"] == "evil.com"
        assert rows[0]["confidence_score"] == "0.70"
        assert rows[0]["tags"] == "apt;c2"
        assert json.loads(rows[0]["enrichment"]) == {"enriched": True, "tld": "com"}

    @pytest.mark.asyncio
    async def test_existing_rows_are_duplicates(self, tmp_path):
        """Test keys already in the inventory are reported as duplicates."""
        path = tmp_path / "iocs.csv"
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(INVENTORY_CSV_HEADER)
            writer.writerow(["domain", "evil.com"] + [""] * (len(INVENTORY_CSV_HEADER) - 2))

        store = CsvIndicatorStore(str(path))
        duplicate = await store.upsert(("domain", "evil.com"), _record())
        inserted = await store.upsert(("ip", "8.8.8.8"), _record("8.8.8.8", CanonicalType.IP))

        assert duplicate.outcome == UpsertOutcome.DUPLICATE
        assert inserted.outcome == UpsertOutcome.INSERTED
        with path.open(encoding="utf-8") as f:
            assert len(list(csv.DictReader(f))) == 2

    @pytest.mark.asyncio
    async def test_same_key_in_one_run(self, tmp_path):
        """Test a key inserted earlier in the run is a duplicate."""
        store = CsvIndicatorStore(str(tmp_path / "iocs.csv"))
        record = _record()

        await store.upsert(record.key, record)
        second = await store.upsert(record.key, record)

        assert second.outcome == UpsertOutcome.DUPLICATE

    @pytest.mark.asyncio
    async def test_write_failure_is_error(self, tmp_path):
        """Test an unwritable path yields an ERROR outcome."""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        store = CsvIndicatorStore(str(blocker / "iocs.csv"))
        record = _record()

        response = await store.upsert(record.key, record)

        assert response.outcome == UpsertOutcome.ERROR
        assert response.detail
