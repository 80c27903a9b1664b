"""Base class for indicator stores."""

from abc import ABC, abstractmethod

from ioc_import.models import CanonicalRecord, UpsertResponse


class IndicatorStore(ABC):
    """Persistence collaborator keyed on (type, value).

    The import engine never decides duplicate status itself; it only
    classifies what the store reports. A store may signal a conflict either
    by returning UpsertOutcome.DUPLICATE or by raising
    DuplicateIndicatorError.
    """

    @abstractmethod
    async def upsert(self, key: tuple[str, str], record: CanonicalRecord) -> UpsertResponse:
        """
        Insert a record unless its key already exists.

        Args:
            key: The (type, value) dedup key
            record: Record to persist

        Returns:
            UpsertResponse describing the outcome
        """
        ...

    async def close(self) -> None:
        """Flush and release resources."""
        return None
