"""Configuration loader for the IOC import pipeline."""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_SUSPICIOUS_TLDS = [
    "xyz", "top", "club", "work", "click", "link", "gq", "ml", "cf", "tk", "ga",
]


def _float_or_none(value: Optional[str]) -> Optional[float]:
    """Convert string to float or return None."""
    return float(value) if value else None


def _parse_csv_list(value: Optional[str], default: list[str]) -> list[str]:
    """Parse a comma-separated string into a list, stripping whitespace."""
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class ImportConfig:
    """Import pipeline configuration from environment variables."""

    # Bulk import engine
    import_workers: int = 4
    max_error_messages: int = 100
    import_deadline_seconds: Optional[float] = None
    default_source: str = "import"
    default_confidence: float = 0.7

    # Host intelligence capability (Shodan InternetDB by default)
    host_intel_url: str = "https://internetdb.shodan.io"
    host_intel_rate_limit: Optional[float] = None
    host_intel_timeout: float = 10.0

    # Domain enrichment
    suspicious_tlds: list[str] = field(default_factory=lambda: list(DEFAULT_SUSPICIOUS_TLDS))


def _validate_positive(value: float, name: str) -> None:
    if value <= 0:
        raise ValueError(f"Invalid {name}: {value}. Must be greater than zero")


def load_config() -> ImportConfig:
    """
    Load configuration from environment variables.

    Raises:
        ValueError: If a numeric setting is malformed or out of range
    """
    workers = int(os.environ.get("IOC_IMPORT_WORKERS", "4"))
    _validate_positive(workers, "IOC_IMPORT_WORKERS")

    max_error_messages = int(os.environ.get("IOC_IMPORT_MAX_ERROR_MESSAGES", "100"))
    if max_error_messages < 0:
        raise ValueError(
            f"Invalid IOC_IMPORT_MAX_ERROR_MESSAGES: {max_error_messages}. Must be >= 0"
        )

    deadline = _float_or_none(os.environ.get("IOC_IMPORT_DEADLINE_SECONDS"))
    if deadline is not None:
        _validate_positive(deadline, "IOC_IMPORT_DEADLINE_SECONDS")

    default_confidence = float(os.environ.get("IOC_IMPORT_DEFAULT_CONFIDENCE", "0.7"))
    if not 0.0 <= default_confidence <= 1.0:
        raise ValueError(
            f"Invalid IOC_IMPORT_DEFAULT_CONFIDENCE: {default_confidence}. Must be in [0, 1]"
        )

    rate_limit = _float_or_none(os.environ.get("HOST_INTEL_RATE_LIMIT"))
    if rate_limit is not None:
        _validate_positive(rate_limit, "HOST_INTEL_RATE_LIMIT")

    timeout = float(os.environ.get("HOST_INTEL_TIMEOUT", "10"))
    _validate_positive(timeout, "HOST_INTEL_TIMEOUT")

    return ImportConfig(
        import_workers=workers,
        max_error_messages=max_error_messages,
        import_deadline_seconds=deadline,
        default_source=os.environ.get("IOC_IMPORT_DEFAULT_SOURCE", "import"),
        default_confidence=default_confidence,
        host_intel_url=os.environ.get("HOST_INTEL_URL", "https://internetdb.shodan.io").rstrip("/"),
        host_intel_rate_limit=rate_limit,
        host_intel_timeout=timeout,
        suspicious_tlds=[
            tld.lower().lstrip(".")
            for tld in _parse_csv_list(os.environ.get("SUSPICIOUS_TLDS"), DEFAULT_SUSPICIOUS_TLDS)
        ],
    )
