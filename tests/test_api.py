import os
import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fakes import FakeNormalizer, FakeScraper, raw

from job_ingest import ingest_jobs
from job_ingest.config import IngestConfig
from job_ingest.models import JobSearchCriteria, JobSource
from job_ingest.store import JobStore


class TestIngestJobs(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Path(self._tmp.name) / "jobs.db"
        self.criteria = JobSearchCriteria(titles=["python"])
        self.scrapers = [FakeScraper(JobSource.pracuj, [raw("https://x/1", JobSource.pracuj)])]
        patches = [
            patch.dict(os.environ, {"JOB_INGEST_DB": str(self.db)}),
            patch("job_ingest.build_scrapers", return_value=self.scrapers),
            patch("job_ingest.LLMNormalizer", return_value=FakeNormalizer()),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def tearDown(self):
        self._tmp.cleanup()

    def test_records_run(self):
        result = ingest_jobs(self.criteria, config=IngestConfig())

        self.assertEqual(result.saved_count, 1)
        self.assertFalse(result.dry_run)
        with JobStore(self.db) as store:
            self.assertEqual(store.known_links(), {"https://x/1"})
            self.assertEqual(store.last_run()["run_id"], result.run_id)

    def test_broken_store_still_returns_result(self):
        locked = sqlite3.OperationalError("database is locked")
        with (
            patch.object(JobStore, "persist", side_effect=locked),
            patch.object(JobStore, "record_run", side_effect=locked),
            self.assertLogs("job_ingest", level="ERROR") as logs,
        ):
            result = ingest_jobs(self.criteria, config=IngestConfig())

        self.assertTrue(result.persistence_failed)
        self.assertEqual(result.processed, 1)
        self.assertEqual(result.saved_count, 0)
        self.assertTrue(any("Failed to record run" in line for line in logs.output))

    def test_dry_run_is_flagged_and_writes_nothing(self):
        result = ingest_jobs(self.criteria, config=IngestConfig(), dry_run=True)

        self.assertTrue(result.dry_run)
        self.assertEqual(result.saved_count, 1)
        with JobStore(self.db) as store:
            self.assertEqual(store.offer_count(), 0)
            self.assertIsNone(store.last_run())


if __name__ == "__main__":
    unittest.main()
