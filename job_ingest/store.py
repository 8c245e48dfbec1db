"""SQLite-backed job offer store and run history."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .models import JobOffer, JobSource, SalaryInfo, ScrapingResult, YearsExperience

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS job_offers (
    link TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    company TEXT,
    location TEXT,
    source TEXT NOT NULL,
    posted_date TEXT,
    expiration_date TEXT,
    salary_json TEXT,
    skills_json TEXT,
    experience_json TEXT,
    raw_text_snapshot TEXT,
    ingested_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_job_offers_source ON job_offers(source);
CREATE INDEX IF NOT EXISTS idx_job_offers_ingested_at ON job_offers(ingested_at);

CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    finished_at TEXT NOT NULL,
    total_found INTEGER DEFAULT 0,
    processed INTEGER DEFAULT 0,
    failed INTEGER DEFAULT 0,
    skipped INTEGER DEFAULT 0,
    duplicates INTEGER DEFAULT 0,
    saved_count INTEGER DEFAULT 0,
    persistence_failed INTEGER DEFAULT 0,
    cancelled INTEGER DEFAULT 0,
    processed_by_source TEXT,
    failed_sources TEXT
);

CREATE INDEX IF NOT EXISTS idx_runs_finished_at ON runs(finished_at);
"""

_UPSERT = """
INSERT INTO job_offers
    (link, title, company, location, source, posted_date, expiration_date,
     salary_json, skills_json, experience_json, raw_text_snapshot, ingested_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(link) DO UPDATE SET
    title = excluded.title,
    company = excluded.company,
    location = excluded.location,
    source = excluded.source,
    posted_date = excluded.posted_date,
    expiration_date = excluded.expiration_date,
    salary_json = excluded.salary_json,
    skills_json = excluded.skills_json,
    experience_json = excluded.experience_json,
    raw_text_snapshot = excluded.raw_text_snapshot,
    ingested_at = excluded.ingested_at
"""


def _dump(model) -> Optional[str]:
    return model.model_dump_json(exclude_none=True) if model is not None else None


def _offer_row(offer: JobOffer) -> tuple:
    return (
        offer.link,
        offer.title,
        offer.company,
        offer.location,
        offer.source.value,
        offer.posted_date.isoformat() if offer.posted_date else None,
        offer.expiration_date.isoformat() if offer.expiration_date else None,
        _dump(offer.salary),
        json.dumps(offer.skills, ensure_ascii=False),
        _dump(offer.years_experience),
        offer.raw_text_snapshot,
        offer.ingested_at.isoformat(),
    )


def _row_offer(row: sqlite3.Row) -> JobOffer:
    return JobOffer(
        link=row["link"],
        title=row["title"],
        company=row["company"],
        location=row["location"],
        source=JobSource(row["source"]),
        posted_date=row["posted_date"],
        expiration_date=row["expiration_date"],
        salary=SalaryInfo.model_validate_json(row["salary_json"]) if row["salary_json"] else None,
        skills=json.loads(row["skills_json"] or "[]"),
        years_experience=(
            YearsExperience.model_validate_json(row["experience_json"])
            if row["experience_json"] else None
        ),
        raw_text_snapshot=row["raw_text_snapshot"],
        ingested_at=row["ingested_at"],
    )


class JobStore:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    # --- RecordStore ---

    def known_links(self) -> set[str]:
        return {row[0] for row in self._conn.execute("SELECT link FROM job_offers")}

    def persist(self, offers: Sequence[JobOffer]) -> None:
        """Upsert offers by link in a single transaction; later writes win."""
        rows = [_offer_row(o) for o in offers]
        # The connection context manager commits, or rolls back on error
        with self._conn:
            self._conn.executemany(_UPSERT, rows)
        logger.info("Saved %d offers to %s", len(rows), self.db_path)

    # --- Reads ---

    def offer_count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM job_offers").fetchone()
        return row[0] if row else 0

    def get_offer(self, link: str) -> Optional[JobOffer]:
        row = self._conn.execute("SELECT * FROM job_offers WHERE link = ?", (link,)).fetchone()
        return _row_offer(row) if row else None

    def recent_offers(self, limit: int = 50) -> list[JobOffer]:
        rows = self._conn.execute(
            "SELECT * FROM job_offers ORDER BY ingested_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [_row_offer(r) for r in rows]

    # --- Runs ---

    def record_run(self, result: ScrapingResult) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO runs
                   (run_id, finished_at, total_found, processed, failed, skipped,
                    duplicates, saved_count, persistence_failed, cancelled,
                    processed_by_source, failed_sources)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    result.run_id, now, result.total_found, result.processed,
                    result.failed, result.skipped, result.duplicates,
                    result.saved_count, int(result.persistence_failed),
                    int(result.cancelled),
                    json.dumps({s.value: n for s, n in result.processed_by_source.items()}),
                    json.dumps([s.value for s in result.failed_sources]),
                ),
            )

    def last_run(self) -> Optional[dict]:
        row = self._conn.execute(
            "SELECT * FROM runs ORDER BY finished_at DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        run = dict(row)
        run["processed_by_source"] = json.loads(run["processed_by_source"] or "{}")
        run["failed_sources"] = json.loads(run["failed_sources"] or "[]")
        return run

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class ReadOnlyStore:
    """Known links from a real store; persistence is a no-op (dry runs)."""

    def __init__(self, store: JobStore):
        self.store = store

    def known_links(self) -> set[str]:
        return self.store.known_links()

    def persist(self, offers: Sequence[JobOffer]) -> None:
        logger.info("Dry run: not saving %d offers", len(offers))
