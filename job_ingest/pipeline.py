"""Ingestion pipeline: fan out over sources, normalize, dedup, persist."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence

from .duplicates import DuplicateDetector
from .mapping import map_to_offer
from .models import (
    JobOffer,
    JobSearchCriteria,
    JobSource,
    NormalizedJobData,
    RawJobOffer,
    ScrapingProgress,
    ScrapingResult,
)
from .validation import ensure_valid

logger = logging.getLogger(__name__)


# --- Collaborator contracts ---


class SourceScraper(Protocol):
    @property
    def source(self) -> JobSource: ...

    def scrape(self, criteria: JobSearchCriteria) -> Sequence[RawJobOffer]:
        """Fetch raw postings. Raises when the source fails as a whole."""
        ...


class Normalizer(Protocol):
    def normalize(self, raw: RawJobOffer) -> Optional[NormalizedJobData]:
        """Return canonical-shaped data, or None when the posting can't be parsed."""
        ...


class RecordStore(Protocol):
    def known_links(self) -> set[str]: ...

    def persist(self, offers: Sequence[JobOffer]) -> None:
        """Upsert offers keyed by link. Raises on failure."""
        ...


class ProgressSink(Protocol):
    def report(self, progress: ScrapingProgress) -> None: ...


# --- Per-scope outcomes ---


class ItemStatus(str, Enum):
    processed = "processed"
    failed = "failed"
    skipped = "skipped"


class SourceStatus(str, Enum):
    ok = "ok"
    failed = "failed"
    not_started = "not_started"


@dataclass
class SourceOutcome:
    """Everything one source worker produced."""

    source: JobSource
    status: SourceStatus = SourceStatus.ok
    error: str = ""
    found: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    offers: list[JobOffer] = field(default_factory=list)

    def count(self, status: ItemStatus) -> None:
        if status is ItemStatus.processed:
            self.processed += 1
        elif status is ItemStatus.failed:
            self.failed += 1
        else:
            self.skipped += 1


class Pipeline:
    """Drive one ingestion run over a fixed set of sources.

    ``execute`` only raises for invalid criteria (before any I/O) or when the
    known-link snapshot cannot be loaded. Source, item and persistence
    failures are folded into the returned ScrapingResult.
    """

    def __init__(
        self,
        scrapers: Iterable[SourceScraper],
        normalizer: Normalizer,
        store: RecordStore,
        detector: Optional[DuplicateDetector] = None,
        progress: Optional[ProgressSink] = None,
        max_workers: int = 1,
    ):
        self.scrapers = list(scrapers)
        self.normalizer = normalizer
        self.store = store
        self.detector = detector or DuplicateDetector()
        self.progress = progress
        self.max_workers = max(1, max_workers)

    def execute(
        self, criteria: JobSearchCriteria, cancel: Optional[threading.Event] = None
    ) -> ScrapingResult:
        ensure_valid(criteria)

        run_id = uuid.uuid4().hex[:12]
        logger.info(
            "Run %s: %d sources, titles=%s", run_id, len(self.scrapers), ", ".join(criteria.titles)
        )

        known = frozenset(self.store.known_links())
        logger.info("Loaded %d known links", len(known))

        outcomes = self._run_sources(criteria, known, cancel)

        total_found = processed = failed = skipped = 0
        by_source: dict[JobSource, int] = {}
        failed_sources: list[JobSource] = []
        collected: list[JobOffer] = []
        for outcome in outcomes:
            if outcome.status is SourceStatus.failed:
                failed_sources.append(outcome.source)
                continue
            if outcome.status is SourceStatus.not_started:
                continue
            total_found += outcome.found
            processed += outcome.processed
            failed += outcome.failed
            skipped += outcome.skipped
            by_source[outcome.source] = outcome.processed
            collected.extend(outcome.offers)

        cancelled = cancel is not None and cancel.is_set()
        if cancelled:
            logger.warning("Run %s cancelled; finalizing with %d collected offers", run_id, len(collected))

        unique = self.detector.remove_duplicates(collected)
        duplicates = len(collected) - len(unique)

        saved_count = 0
        persistence_failed = False
        if unique:
            self._report(ScrapingProgress(
                activity="saving", found=total_found, processed=processed, failed=failed,
            ))
            try:
                self.store.persist(unique)
                saved_count = len(unique)
                logger.info("Persisted %d offers", saved_count)
            except Exception as exc:
                logger.error("Failed to persist %d offers: %s", len(unique), exc)
                persistence_failed = True

        result = ScrapingResult(
            run_id=run_id,
            total_found=total_found,
            processed=processed,
            failed=failed,
            skipped=skipped,
            duplicates=duplicates,
            saved_count=saved_count,
            persistence_failed=persistence_failed,
            cancelled=cancelled,
            processed_by_source=by_source,
            failed_sources=failed_sources,
        )
        logger.info(
            "Run %s complete: found=%d processed=%d failed=%d skipped=%d duplicates=%d saved=%d",
            run_id, total_found, processed, failed, skipped, duplicates, saved_count,
        )
        return result

    def _run_sources(
        self,
        criteria: JobSearchCriteria,
        known: frozenset[str],
        cancel: Optional[threading.Event],
    ) -> list[SourceOutcome]:
        if self.max_workers == 1 or len(self.scrapers) <= 1:
            return [self._run_source(s, criteria, known, cancel) for s in self.scrapers]

        workers = min(self.max_workers, len(self.scrapers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="source") as pool:
            # map() yields in submission order, keeping dedup input order stable
            return list(pool.map(lambda s: self._run_source(s, criteria, known, cancel), self.scrapers))

    def _run_source(
        self,
        scraper: SourceScraper,
        criteria: JobSearchCriteria,
        known: frozenset[str],
        cancel: Optional[threading.Event],
    ) -> SourceOutcome:
        source = scraper.source
        if cancel is not None and cancel.is_set():
            logger.info("Skipping %s: run cancelled", source.value)
            return SourceOutcome(source=source, status=SourceStatus.not_started)

        self._report(ScrapingProgress(source=source, activity="scraping"))
        logger.info("Scraping %s", source.value)
        try:
            raw_offers = list(scraper.scrape(criteria))
        except Exception as exc:
            logger.error("Source %s failed: %s", source.value, exc)
            return SourceOutcome(source=source, status=SourceStatus.failed, error=str(exc))

        outcome = SourceOutcome(source=source, found=len(raw_offers))
        logger.info("Found %d raw offers from %s", outcome.found, source.value)

        for raw in raw_offers:
            if cancel is not None and cancel.is_set():
                outcome.cancelled = True
                break
            status, offer = self._process_item(raw, known, outcome)
            outcome.count(status)
            if offer is not None:
                outcome.offers.append(offer)

        return outcome

    def _process_item(
        self, raw: RawJobOffer, known: frozenset[str], outcome: SourceOutcome
    ) -> tuple[ItemStatus, Optional[JobOffer]]:
        if raw.link in known:
            return ItemStatus.skipped, None

        self._report(ScrapingProgress(
            source=outcome.source,
            activity="normalizing",
            found=outcome.found,
            processed=outcome.processed,
            failed=outcome.failed,
        ))
        try:
            data = self.normalizer.normalize(raw)
            if data is None:
                logger.warning("Failed to normalize offer: %s", raw.link)
                return ItemStatus.failed, None
            return ItemStatus.processed, map_to_offer(data, raw)
        except Exception as exc:
            logger.warning("Error processing offer %s: %s", raw.link, exc)
            return ItemStatus.failed, None

    def _report(self, progress: ScrapingProgress) -> None:
        if self.progress is None:
            return
        try:
            self.progress.report(progress)
        except Exception as exc:
            logger.debug("Progress sink error: %s", exc)
