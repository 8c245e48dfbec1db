"""job_ingest — multi-board job offer ingestion with LLM normalization."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from .config import IngestConfig, load_config
from .models import JobSearchCriteria, ScrapingResult
from .normalizer import LLMNormalizer
from .pipeline import Pipeline, ProgressSink
from .scrapers import build_scrapers
from .store import JobStore, ReadOnlyStore
from .validation import ensure_valid

logger = logging.getLogger(__name__)


def ingest_jobs(
    criteria: JobSearchCriteria,
    config_path: Optional[Path] = None,
    config: Optional[IngestConfig] = None,
    progress: Optional[ProgressSink] = None,
    dry_run: bool = False,
    max_workers: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> ScrapingResult:
    """Run a full ingestion cycle. This is the public API.

    Args:
        criteria: What to search for.
        config_path: Path to a YAML config override.
        config: Pre-built config (takes precedence over config_path).
        progress: Sink for progress notifications.
        dry_run: Read known links but never write offers or run history.
        max_workers: Override the configured number of source workers.
        cancel: Event that stops the run between items; collected offers are still saved.
    """
    ensure_valid(criteria)
    if config is None:
        config = load_config(config_path)

    workers = max_workers if max_workers is not None else config.pipeline.max_workers
    scrapers = build_scrapers(config)
    logger.info("Sources: %s", ", ".join(s.source.value for s in scrapers) or "none")

    with JobStore(config.store.resolved_path()) as store:
        pipeline = Pipeline(
            scrapers=scrapers,
            normalizer=LLMNormalizer(config.normalizer),
            store=ReadOnlyStore(store) if dry_run else store,
            progress=progress,
            max_workers=workers,
        )
        result = pipeline.execute(criteria, cancel=cancel)
        if dry_run:
            return result.model_copy(update={"dry_run": True})
        try:
            store.record_run(result)
        except Exception as exc:
            logger.error("Failed to record run %s: %s", result.run_id, exc)

    return result


__all__ = ["ingest_jobs", "JobSearchCriteria", "ScrapingResult"]
