"""Tests for per-indicator enrichment."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ioc_import.config import ImportConfig
from ioc_import.enrichment.pipeline import enrich_domain, enrich_hash, enrich_indicator
from ioc_import.errors import HostIntelError
from ioc_import.models import CanonicalType, HostIntel, RawIndicator, SourceFormat


def _indicator(value, ioc_type):
    return RawIndicator(value=value, type=ioc_type, source_format=SourceFormat.FREETEXT)


def _host_intel(**kwargs):
    client = MagicMock()
    client.name = "internetdb"
    client.lookup = AsyncMock(**kwargs)
    return client


class TestEnrichIP:
    """Tests for IP enrichment through enrich_indicator()."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test host intel details are attached."""
        client = _host_intel(return_value=HostIntel(ports=[3389], tags=["rdp"]))
        enrichment = await enrich_indicator(_indicator("203.0.113.7", CanonicalType.IP), client)

        assert enrichment.enriched is True
        assert enrichment.details["internetdb"]["ports"] == [3389]
        assert enrichment.details["has_open_ports"] is True
        assert enrichment.details["has_vulns"] is False
        assert enrichment.enriched_at is not None
        client.lookup.assert_awaited_once_with("203.0.113.7")

    @pytest.mark.asyncio
    async def test_lookup_failure(self):
        """Test a failing lookup yields enriched=False with the error recorded."""
        client = _host_intel(side_effect=HostIntelError("timeout"))
        enrichment = await enrich_indicator(_indicator("203.0.113.7", CanonicalType.IP), client)

        assert enrichment.enriched is False
        assert enrichment.details == {"internetdb_error": "timeout"}
        assert enrichment.error == "timeout"

    @pytest.mark.asyncio
    async def test_no_client(self):
        """Test IP enrichment without a capability is a no-op."""
        enrichment = await enrich_indicator(_indicator("203.0.113.7", CanonicalType.IP))

        assert enrichment.enriched is False
        assert enrichment.details == {}


class TestEnrichDomain:
    """Tests for enrich_domain()."""

    @pytest.mark.asyncio
    async def test_suspicious_tld(self):
        """Test a domain under a listed TLD is flagged."""
        enrichment = await enrich_domain(
            _indicator("login.evil.xyz", CanonicalType.DOMAIN), None, ImportConfig()
        )

        assert enrichment.enriched is True
        assert enrichment.details["tld"] == "xyz"
        assert enrichment.details["registered_domain"] == "evil.xyz"
        assert enrichment.details["suspicious_tld"] is True

    @pytest.mark.asyncio
    async def test_multi_label_suffix(self):
        """Test public suffixes with several labels are kept whole."""
        enrichment = await enrich_domain(
            _indicator("shop.example.co.uk", CanonicalType.DOMAIN), None, ImportConfig()
        )

        assert enrichment.details["tld"] == "co.uk"
        assert enrichment.details["registered_domain"] == "example.co.uk"
        assert enrichment.details["suspicious_tld"] is False

    @pytest.mark.asyncio
    async def test_configured_tlds(self):
        """Test the suspicious TLD list comes from config."""
        config = ImportConfig(suspicious_tlds=["com"])
        enrichment = await enrich_domain(_indicator("Example.COM", CanonicalType.DOMAIN), None, config)

        assert enrichment.details["domain"] == "example.com"
        assert enrichment.details["suspicious_tld"] is True


class TestEnrichHash:
    """Tests for enrich_hash()."""

    @pytest.mark.asyncio
    async def test_valid_hash(self):
        """Test a well-formed hash is reported valid."""
        enrichment = await enrich_hash(
            _indicator("d41d8cd98f00b204e9800998ecf8427e", CanonicalType.MD5), None, ImportConfig()
        )

        assert enrichment.details == {"hash_type": "md5", "expected_length": 32, "valid_format": True}

    @pytest.mark.asyncio
    async def test_malformed_hash(self):
        """Test an explicitly typed hash of the wrong length is flagged."""
        enrichment = await enrich_hash(_indicator("abc", CanonicalType.SHA256), None, ImportConfig())

        assert enrichment.enriched is True
        assert enrichment.details["valid_format"] is False
        assert enrichment.details["expected_length"] == 64


class TestEnrichIndicator:
    """Tests for enrich_indicator() dispatch."""

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        """Test types without an enricher are returned unenriched."""
        enrichment = await enrich_indicator(_indicator("http://evil.com", CanonicalType.URL))

        assert enrichment.enriched is False
        assert enrichment.error is None

    @pytest.mark.asyncio
    async def test_enricher_exception_contained(self):
        """Test an unexpected enricher failure never propagates."""
        with patch(
            "ioc_import.enrichment.pipeline._TLD_EXTRACTOR", side_effect=RuntimeError("bad suffix list")
        ):
            enrichment = await enrich_indicator(_indicator("evil.com", CanonicalType.DOMAIN))

        assert enrichment.enriched is False
        assert enrichment.error == "bad suffix list"
