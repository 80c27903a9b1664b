"""In-memory indicator store."""

from ioc_import.models import CanonicalRecord, UpsertOutcome, UpsertResponse
from ioc_import.store.base import IndicatorStore


class MemoryIndicatorStore(IndicatorStore):
    """Dict-backed store, used for dry runs and tests."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], CanonicalRecord] = {}

    async def upsert(self, key: tuple[str, str], record: CanonicalRecord) -> UpsertResponse:
        if key in self.records:
            return UpsertResponse(UpsertOutcome.DUPLICATE, detail="Indicator already exists")
        self.records[key] = record
        return UpsertResponse(UpsertOutcome.INSERTED)

    def __len__(self) -> int:
        return len(self.records)
