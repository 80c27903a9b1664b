"""CSV inventory store: one row per (type, value), append-only."""

import asyncio
import csv
import json
import logging
from pathlib import Path
from typing import Optional

from ioc_import.models import CanonicalRecord, UpsertOutcome, UpsertResponse
from ioc_import.store.base import IndicatorStore

logger = logging.getLogger("ioc_import.csv_store")

INVENTORY_CSV_HEADER = [
    "ioc_type",
    "ioc_value",
    "import_source",
    "source_ref",
    "threat_type",
    "confidence_score",
    "first_seen",
    "last_seen",
    "tags",
    "enrichment",
]


class CsvIndicatorStore(IndicatorStore):
    """Appends new indicators to a CSV inventory, skipping existing keys."""

    def __init__(self, csv_path: str):
        """Initialize the store; existing keys are loaded on first upsert."""
        self.path = Path(csv_path)
        self.lock = asyncio.Lock()
        self._existing: Optional[set[tuple[str, str]]] = None

    def _load_existing(self) -> set[tuple[str, str]]:
        """Read existing (ioc_type, ioc_value) keys from the inventory."""
        existing: set[tuple[str, str]] = set()
        if self.path.exists() and self.path.stat().st_size > 0:
            with self.path.open("r", encoding="utf-8", newline="") as f:
                reader = csv.DictReader(f)
                for row in reader:
                    if row.get("ioc_type") and not row["ioc_type"].startswith("#"):
                        existing.add((row["ioc_type"], row.get("ioc_value", "")))
        logger.debug(f"Loaded {len(existing)} existing keys from {self.path}")
        return existing

    def _append_row(self, record: CanonicalRecord) -> None:
        needs_header = not self.path.exists() or self.path.stat().st_size == 0
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            if needs_header:
                writer.writerow(INVENTORY_CSV_HEADER)
            writer.writerow([
                record.type.value,
                record.value,
                record.import_source,
                record.source_ref or "",
                record.threat_type or "",
                f"{record.confidence_score:.2f}",
                record.first_seen.isoformat(),
                record.last_seen.isoformat(),
                ";".join(record.tags),
                json.dumps(record.enrichment, default=str, sort_keys=True),
            ])

    async def upsert(self, key: tuple[str, str], record: CanonicalRecord) -> UpsertResponse:
        """Append the record unless the key is already in the inventory."""
        async with self.lock:
            if self._existing is None:
                self._existing = self._load_existing()
            if key in self._existing:
                logger.debug(f"Skipping duplicate in inventory: {record.value}")
                return UpsertResponse(UpsertOutcome.DUPLICATE, detail="Indicator already exists")

            try:
                self._append_row(record)
            except OSError as e:
                logger.warning(f"Failed to write {record.value} to {self.path}: {e}")
                return UpsertResponse(UpsertOutcome.ERROR, detail=str(e))

            self._existing.add(key)
            return UpsertResponse(UpsertOutcome.INSERTED)
