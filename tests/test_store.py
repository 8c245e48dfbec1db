import tempfile
import unittest
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from job_ingest.models import (
    JobOffer,
    JobSource,
    SalaryInfo,
    ScrapingResult,
    YearsExperience,
)
from job_ingest.store import JobStore, ReadOnlyStore


def _job(link, title="Python Developer", **kw):
    return JobOffer(link=link, title=title, source=JobSource.nofluffjobs, **kw)


class TestJobStore(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = JobStore(Path(self._tmp.name) / "nested" / "jobs.db")

    def tearDown(self):
        self.store.close()
        self._tmp.cleanup()

    def test_empty_store(self):
        self.assertEqual(self.store.known_links(), set())
        self.assertEqual(self.store.offer_count(), 0)
        self.assertIsNone(self.store.last_run())
        self.assertIsNone(self.store.get_offer("https://x/1"))

    def test_persist_and_known_links(self):
        self.store.persist([_job("https://x/1"), _job("https://x/2")])
        self.assertEqual(self.store.known_links(), {"https://x/1", "https://x/2"})
        self.assertEqual(self.store.offer_count(), 2)

    def test_upsert_by_link(self):
        self.store.persist([_job("https://x/1", title="Old title")])
        self.store.persist([_job("https://x/1", title="New title", company="Acme")])

        self.assertEqual(self.store.offer_count(), 1)
        stored = self.store.get_offer("https://x/1")
        self.assertEqual(stored.title, "New title")
        self.assertEqual(stored.company, "Acme")

    def test_round_trip(self):
        job = _job(
            "https://x/1",
            company="Acme",
            location="Kraków",
            salary=SalaryInfo.from_structured(Decimal("5000"), Decimal("7000"), "PLN"),
            years_experience=YearsExperience.from_range(2, 5),
            skills=["Python", "SQL"],
            posted_date=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
            raw_text_snapshot="Full description",
        )
        self.store.persist([job])
        self.assertEqual(self.store.get_offer("https://x/1").model_dump(), job.model_dump())

    def test_text_salary_round_trip(self):
        job = _job("https://x/1", salary=SalaryInfo.from_text("do 20k netto"))
        self.store.persist([job])
        stored = self.store.get_offer("https://x/1")
        self.assertEqual(stored.salary.raw_text, "do 20k netto")
        self.assertIsNone(stored.salary.currency)

    def test_recent_offers_limit(self):
        self.store.persist([_job(f"https://x/{i}") for i in range(5)])
        self.assertEqual(len(self.store.recent_offers(3)), 3)

    def test_record_and_read_last_run(self):
        result = ScrapingResult(
            run_id="run1",
            total_found=4,
            processed=3,
            saved_count=3,
            cancelled=True,
            processed_by_source={JobSource.justjoin: 3},
            failed_sources=[JobSource.pracuj],
        )
        self.store.record_run(result)

        last = self.store.last_run()
        self.assertEqual(last["run_id"], "run1")
        self.assertEqual(last["saved_count"], 3)
        self.assertEqual(last["cancelled"], 1)
        self.assertEqual(last["processed_by_source"], {"justjoin": 3})
        self.assertEqual(last["failed_sources"], ["pracuj"])


class TestReadOnlyStore(unittest.TestCase):
    def test_reads_known_links_without_writing(self):
        with tempfile.TemporaryDirectory() as td:
            with JobStore(Path(td) / "jobs.db") as store:
                store.persist([_job("https://x/1")])
                dry = ReadOnlyStore(store)

                dry.persist([_job("https://x/2")])

                self.assertEqual(dry.known_links(), {"https://x/1"})
                self.assertEqual(store.offer_count(), 1)


if __name__ == "__main__":
    unittest.main()
