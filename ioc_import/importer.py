"""Bulk import engine: parsed indicators in, ImportResult out."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from ioc_import.config import ImportConfig
from ioc_import.detection import canonicalize_value
from ioc_import.enrichment.base import HostIntelClient
from ioc_import.enrichment.pipeline import enrich_indicator
from ioc_import.errors import DuplicateIndicatorError
from ioc_import.models import (
    CanonicalRecord,
    Enrichment,
    ImportOptions,
    ImportResult,
    RawIndicator,
    UpsertOutcome,
)
from ioc_import.parser import parse_ioc_file
from ioc_import.store.base import IndicatorStore

logger = logging.getLogger("ioc_import.importer")


def _merge_tags(*groups) -> list[str]:
    """Concatenate tag groups, dropping empties and repeats but keeping order."""
    merged: list[str] = []
    for group in groups:
        for tag in group or ():
            if tag and tag not in merged:
                merged.append(tag)
    return merged


def _confidence_score(confidence: Any, default: float) -> float:
    """Scale a 0-100 confidence to 0-1."""
    if confidence is None or isinstance(confidence, bool):
        return default
    try:
        return max(0.0, min(1.0, float(confidence) / 100))
    except (TypeError, ValueError):
        return default


def build_record(
    indicator: RawIndicator,
    options: ImportOptions,
    config: ImportConfig,
    enrichment: Optional[Enrichment] = None,
    now: Optional[datetime] = None,
) -> CanonicalRecord:
    """
    Build the record handed to the store.

    Caller tags come first, then parser tags, then parser labels. Parser
    context and enrichment details land in the opaque enrichment dict.
    """
    now = now or datetime.now(timezone.utc)
    context = indicator.context
    first_seen = indicator.valid_from or context.get("timestamp") or now

    metadata: dict[str, Any] = {
        "import_format": (options.format or indicator.source_format).value,
        "name": indicator.name,
        "description": indicator.description,
        "valid_until": indicator.valid_until.isoformat() if indicator.valid_until else None,
        "original": indicator.original if indicator.original != indicator.value else None,
    }
    for key, value in context.items():
        if key != "timestamp":
            metadata[key] = value
    if enrichment is not None:
        metadata.update(enrichment.as_metadata())

    return CanonicalRecord(
        type=indicator.type,
        value=canonicalize_value(indicator.type, indicator.value),
        import_source=options.source or config.default_source,
        source_ref=indicator.origin_ref,
        threat_type=context.get("category") or context.get("threat_type"),
        confidence_score=_confidence_score(indicator.confidence, config.default_confidence),
        first_seen=first_seen,
        last_seen=now,
        tags=_merge_tags(options.tags, indicator.tags, indicator.labels),
        enrichment={k: v for k, v in metadata.items() if v not in (None, "", [], {})},
    )


class _BatchImporter:
    """Holds the shared state of one import_iocs call."""

    def __init__(
        self,
        store: IndicatorStore,
        options: ImportOptions,
        config: ImportConfig,
        host_intel: Optional[HostIntelClient],
        total: int,
    ):
        self.store = store
        self.options = options
        self.config = config
        self.host_intel = host_intel
        self.result = ImportResult(total=total)

    def _record_error(self, value: str, detail: str) -> None:
        self.result.errors += 1
        if len(self.result.error_messages) < self.config.max_error_messages:
            self.result.error_messages.append(f"{value}: {detail}")

    async def process(self, indicator: RawIndicator) -> None:
        """Enrich, build and upsert one indicator, then classify the outcome."""
        if indicator.type is None:
            self._record_error(indicator.value, "Unable to detect IOC type")
            return

        enrichment = None
        if self.options.auto_enrich:
            enrichment = await enrich_indicator(indicator, self.host_intel, self.config)

        try:
            record = build_record(indicator, self.options, self.config, enrichment)
            response = await self.store.upsert(record.key, record)
            outcome, detail = response.outcome, response.detail
        except DuplicateIndicatorError:
            self.result.duplicates += 1
            return
        except Exception as e:
            logger.warning(f"Upsert failed for {indicator.value}: {e}")
            self._record_error(indicator.value, str(e) or type(e).__name__)
            return

        if outcome == UpsertOutcome.INSERTED:
            self.result.imported += 1
            if enrichment is not None and enrichment.enriched:
                self.result.enriched += 1
        elif outcome == UpsertOutcome.DUPLICATE:
            self.result.duplicates += 1
        else:
            self._record_error(indicator.value, detail or "Upsert failed")

    async def worker(self, queue: "asyncio.Queue[RawIndicator]") -> None:
        while True:
            indicator = await queue.get()
            try:
                await self.process(indicator)
            except Exception as e:
                logger.error(f"Unexpected failure importing {indicator.value}: {e}")
                self._record_error(indicator.value, str(e) or type(e).__name__)
            finally:
                queue.task_done()


async def import_iocs(
    candidates: list[RawIndicator],
    store: IndicatorStore,
    options: Optional[ImportOptions] = None,
    config: Optional[ImportConfig] = None,
    host_intel: Optional[HostIntelClient] = None,
) -> ImportResult:
    """
    Import a batch of parsed indicators.

    Items are consumed from a queue by config.import_workers workers; with a
    single worker the batch is processed strictly in order. One item's
    failure never stops the rest. If config.import_deadline_seconds expires,
    outstanding work is cancelled and the result is flagged timed_out with
    the unprocessed count.

    Args:
        candidates: Parsed (and not yet enriched) indicators
        store: Persistence collaborator
        options: Source, tags and auto-enrich flag
        config: Import configuration
        host_intel: Optional capability used for IP enrichment

    Returns:
        Aggregate ImportResult
    """
    options = options or ImportOptions()
    config = config or ImportConfig()
    batch = _BatchImporter(store, options, config, host_intel, total=len(candidates))

    if not candidates:
        return batch.result

    queue: asyncio.Queue[RawIndicator] = asyncio.Queue()
    for indicator in candidates:
        queue.put_nowait(indicator)

    worker_count = max(1, min(config.import_workers, len(candidates)))
    logger.info(
        f"Importing {len(candidates)} IOCs with {worker_count} worker(s) "
        f"(source={options.source or config.default_source}, auto_enrich={options.auto_enrich})"
    )

    workers = [asyncio.create_task(batch.worker(queue)) for _ in range(worker_count)]
    try:
        await asyncio.wait_for(queue.join(), timeout=config.import_deadline_seconds)
    except asyncio.TimeoutError:
        batch.result.timed_out = True
        logger.warning(
            f"Import deadline of {config.import_deadline_seconds}s expired: processed "
            f"{batch.result.processed} of {batch.result.total} IOCs, "
            f"{batch.result.unprocessed} not attempted or interrupted"
        )
    finally:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    result = batch.result
    logger.info(
        f"Import complete: {result.imported} imported, {result.duplicates} duplicates, "
        f"{result.errors} errors, {result.enriched} enriched"
    )
    return result


async def import_ioc_file(
    content: Union[str, dict],
    filename: str,
    store: IndicatorStore,
    options: Optional[ImportOptions] = None,
    config: Optional[ImportConfig] = None,
    host_intel: Optional[HostIntelClient] = None,
) -> ImportResult:
    """
    Parse a structured IOC document and import everything it yields.

    The source defaults to `import_<format>`.

    Raises:
        IOCFormatError: If the document cannot be parsed
    """
    parsed = parse_ioc_file(content, filename)
    options = options or ImportOptions()
    file_options = ImportOptions(
        source=options.source or f"import_{parsed.format.value}",
        tags=list(options.tags),
        auto_enrich=options.auto_enrich,
        format=parsed.format,
    )

    result = await import_iocs(parsed.iocs, store, file_options, config, host_intel)
    result.format = parsed.format.value
    result.metadata = dict(parsed.metadata)
    result.metadata["parse_errors"] = len(parsed.errors)
    return result
