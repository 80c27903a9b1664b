"""Per-indicator enrichment, dispatched by type.

Every enricher returns an Enrichment and never raises: a reputation-service
outage downgrades the item to "not enriched" instead of aborting the import.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import tldextract

from ioc_import.config import ImportConfig
from ioc_import.detection import HASH_LENGTHS, is_valid_hash
from ioc_import.enrichment.base import HostIntelClient
from ioc_import.models import CanonicalType, Enrichment, RawIndicator

logger = logging.getLogger("ioc_import.enrichment")

# Offline extractor: uses the public suffix snapshot bundled with tldextract
_TLD_EXTRACTOR = tldextract.TLDExtract(suffix_list_urls=())


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def enrich_ip(
    indicator: RawIndicator, host_intel: Optional[HostIntelClient], config: ImportConfig
) -> Enrichment:
    """Attach open-port, vuln and tag summaries from the host intelligence capability."""
    if host_intel is None:
        return Enrichment(enriched=False, error="No host intelligence source configured")

    try:
        intel = await host_intel.lookup(indicator.value)
    except Exception as e:
        logger.warning(f"Host intel lookup failed for {indicator.value}: {e}")
        return Enrichment(
            enriched=False,
            details={f"{host_intel.name}_error": str(e)},
            error=str(e),
            enriched_at=_now(),
        )

    return Enrichment(
        enriched=True,
        details={
            host_intel.name: asdict(intel),
            "has_open_ports": bool(intel.ports),
            "has_vulns": bool(intel.vulns),
        },
        enriched_at=_now(),
    )


async def enrich_domain(
    indicator: RawIndicator, host_intel: Optional[HostIntelClient], config: ImportConfig
) -> Enrichment:
    """Compute the TLD and flag membership in the suspicious-TLD set."""
    domain = indicator.value.lower().rstrip(".")
    extracted = _TLD_EXTRACTOR(domain)
    tld = extracted.suffix or domain.rsplit(".", 1)[-1]
    last_label = tld.rsplit(".", 1)[-1]
    registered = (
        f"{extracted.domain}.{extracted.suffix}" if extracted.domain and extracted.suffix else None
    )

    return Enrichment(
        enriched=True,
        details={
            "domain": domain,
            "registered_domain": registered,
            "tld": tld,
            "suspicious_tld": last_label in config.suspicious_tlds,
        },
        enriched_at=_now(),
    )


async def enrich_hash(
    indicator: RawIndicator, host_intel: Optional[HostIntelClient], config: ImportConfig
) -> Enrichment:
    """Check that the hash literal matches its algorithm's expected length."""
    ioc_type = indicator.type
    return Enrichment(
        enriched=True,
        details={
            "hash_type": ioc_type.value,
            "expected_length": HASH_LENGTHS[ioc_type],
            "valid_format": is_valid_hash(ioc_type, indicator.value),
        },
        enriched_at=_now(),
    )


Enricher = Callable[
    [RawIndicator, Optional[HostIntelClient], ImportConfig], Awaitable[Enrichment]
]

ENRICHERS: dict[CanonicalType, Enricher] = {
    CanonicalType.IP: enrich_ip,
    CanonicalType.DOMAIN: enrich_domain,
    CanonicalType.MD5: enrich_hash,
    CanonicalType.SHA1: enrich_hash,
    CanonicalType.SHA256: enrich_hash,
    CanonicalType.SHA512: enrich_hash,
}


async def enrich_indicator(
    indicator: RawIndicator,
    host_intel: Optional[HostIntelClient] = None,
    config: Optional[ImportConfig] = None,
) -> Enrichment:
    """
    Enrich a single indicator.

    Args:
        indicator: The parsed indicator (read-only)
        host_intel: Optional capability for IP lookups
        config: Import configuration (defaults when omitted)

    Returns:
        Enrichment; enriched=False for unsupported types or on any failure
    """
    config = config or ImportConfig()
    enricher = ENRICHERS.get(indicator.type) if indicator.type else None
    if enricher is None:
        return Enrichment(enriched=False)

    try:
        return await enricher(indicator, host_intel, config)
    except Exception as e:
        logger.warning(f"Enrichment failed for {indicator.value}: {e}")
        return Enrichment(enriched=False, error=str(e), enriched_at=_now())
