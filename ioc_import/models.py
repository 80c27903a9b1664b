"""Data models for IOC import and normalization."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class CanonicalType(Enum):
    """Supported canonical IOC types."""

    IP = "ip"
    IPV6 = "ipv6"
    DOMAIN = "domain"
    URL = "url"
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"
    EMAIL = "email"
    MAC = "mac"
    ASN = "asn"
    FILENAME = "filename"
    SSDEEP = "ssdeep"


HASH_TYPES = (
    CanonicalType.MD5,
    CanonicalType.SHA1,
    CanonicalType.SHA256,
    CanonicalType.SHA512,
)


class SourceFormat(Enum):
    """Input formats an indicator can come from."""

    FREETEXT = "freetext"
    STIX = "stix"
    MISP = "misp"
    OPENIOC = "openioc"
    CSV = "csv"


@dataclass(frozen=True)
class RawIndicator:
    """A parsed indicator, before enrichment and persistence."""

    value: str
    type: Optional[CanonicalType]
    source_format: SourceFormat
    origin_ref: Optional[str] = None
    labels: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    confidence: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    description: Optional[str] = None
    name: Optional[str] = None
    original: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        """Reject empty values."""
        if not self.value:
            raise ValueError("RawIndicator value must not be empty")


@dataclass
class ParseError:
    """An input item that looked like an indicator but could not be used."""

    value: str
    error: str


@dataclass
class ParseResult:
    """Output of every format parser."""

    format: SourceFormat
    iocs: list[RawIndicator] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.metadata.setdefault("format", self.format.value)


@dataclass
class ImportOptions:
    """Caller options for a bulk import."""

    source: Optional[str] = None  # resolved to config.default_source ("import")
    tags: list[str] = field(default_factory=list)
    auto_enrich: bool = False
    format: Optional[SourceFormat] = None


@dataclass
class HostIntel:
    """Network reconnaissance summary for a single IP address."""

    ports: list[int] = field(default_factory=list)
    hostnames: list[str] = field(default_factory=list)
    vulns: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    cpes: list[str] = field(default_factory=list)


@dataclass
class Enrichment:
    """Best-effort enrichment for a single indicator."""

    enriched: bool = False
    details: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    enriched_at: Optional[datetime] = None

    def as_metadata(self) -> dict[str, Any]:
        """Flatten into the opaque record enrichment dict."""
        data: dict[str, Any] = {"enriched": self.enriched, **self.details}
        if self.enriched_at is not None:
            data["enriched_at"] = self.enriched_at.isoformat()
        if self.error:
            data["enrichment_error"] = self.error
        return data


@dataclass
class CanonicalRecord:
    """An indicator ready to be handed to the store."""

    type: CanonicalType
    value: str
    import_source: str
    first_seen: datetime
    last_seen: datetime
    source_ref: Optional[str] = None
    threat_type: Optional[str] = None
    confidence_score: float = 0.7
    tags: list[str] = field(default_factory=list)
    enrichment: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        """Dedup key used by the store."""
        return (self.type.value, self.value)


class UpsertOutcome(Enum):
    """How a store handled an upsert."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass
class UpsertResponse:
    """Store response for a single upsert."""

    outcome: UpsertOutcome
    detail: Optional[str] = None


@dataclass
class ImportResult:
    """Aggregate outcome of a bulk import."""

    total: int = 0
    imported: int = 0
    duplicates: int = 0
    errors: int = 0
    enriched: int = 0
    error_messages: list[str] = field(default_factory=list)
    timed_out: bool = False
    format: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        """Number of items that reached a terminal classification."""
        return self.imported + self.duplicates + self.errors

    @property
    def unprocessed(self) -> int:
        """Items never attempted because the deadline expired."""
        return self.total - self.processed

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary."""
        return {
            "total": self.total,
            "imported": self.imported,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "enriched": self.enriched,
            "error_messages": list(self.error_messages),
            "timed_out": self.timed_out,
            "unprocessed": self.unprocessed,
            "format": self.format,
            "metadata": self.metadata,
        }
