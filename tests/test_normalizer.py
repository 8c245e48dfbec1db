import json
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import requests

from job_ingest.config import NormalizerConfig
from job_ingest.models import JobSource, RawJobOffer, SalaryBag
from job_ingest.normalizer import LLMNormalizer, _extract_json, build_prompt


def _reply(content):
    resp = MagicMock()
    resp.json.return_value = {"choices": [{"message": {"content": content}}]}
    return resp


RAW = RawJobOffer(
    title="Python Dev",
    link="https://justjoin.it/job-offer/acme-python-dev",
    source=JobSource.justjoin,
    company="Acme",
    salary_text="20 000 - 25 000 PLN",
    description="We need Python and SQL. 3+ years of experience.",
)


class TestExtractJson(unittest.TestCase):
    def test_plain(self):
        self.assertEqual(_extract_json('{"title": "Dev"}'), {"title": "Dev"})

    def test_think_tags_and_fences(self):
        text = '<think>reasoning {not json}</think>\n```json\n{"title": "Dev"}\n```'
        self.assertEqual(_extract_json(text), {"title": "Dev"})

    def test_surrounding_prose(self):
        self.assertEqual(_extract_json('Here you go: {"title": "Dev"} hope it helps'), {"title": "Dev"})

    def test_garbage(self):
        self.assertIsNone(_extract_json("no json here"))
        self.assertIsNone(_extract_json("[1, 2, 3]"))


class TestBuildPrompt(unittest.TestCase):
    def test_includes_raw_fields_and_truncates(self):
        raw = RAW.model_copy(update={"description": "x" * 100})
        prompt = build_prompt(raw, 20)
        self.assertIn("SourceSite: justjoin", prompt)
        self.assertIn("SalaryText: 20 000 - 25 000 PLN", prompt)
        self.assertIn("x" * 17 + "...", prompt)
        self.assertNotIn("x" * 21, prompt)


class TestLLMNormalizer(unittest.TestCase):
    def setUp(self):
        self.normalizer = LLMNormalizer(NormalizerConfig(api_key_env="TEST_NORMALIZER_KEY"))

    def test_structured_reply(self):
        content = json.dumps({
            "title": "Python Developer",
            "link": "https://elsewhere.example/1",
            "salary": {"min": 20000, "max": 25000, "currency": "PLN", "grossNet": "net"},
            "requiredYearsExperience": 3,
            "requiredSkills": ["Python", "SQL"],
            "company": "Acme",
            "postedDate": "2024-05-01",
        })
        with patch("job_ingest.normalizer.requests.post", return_value=_reply(content)) as post:
            data = self.normalizer.normalize(RAW)

        self.assertEqual(data.title, "Python Developer")
        self.assertEqual(data.link, RAW.link)
        self.assertEqual(data.source, "justjoin")
        self.assertIsInstance(data.salary, SalaryBag)
        self.assertEqual(data.salary.gross_net, "net")
        self.assertEqual(data.years_experience, 3)
        self.assertEqual(data.skills, ["Python", "SQL"])
        self.assertEqual(data.posted_date, datetime(2024, 5, 1))

        payload = post.call_args.kwargs["json"]
        self.assertEqual(payload["temperature"], 0.0)
        self.assertIn(RAW.link, payload["messages"][1]["content"])

    def test_timestamped_dates_accepted(self):
        content = json.dumps({
            "title": "Dev",
            "posted_date": "2024-05-01T12:30:00Z",
            "expirationDate": "2024-06-01T00:00:00+02:00",
        })
        with patch("job_ingest.normalizer.requests.post", return_value=_reply(content)):
            data = self.normalizer.normalize(RAW)

        self.assertIsNotNone(data)
        self.assertEqual(data.posted_date, datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
        self.assertEqual(data.expiration_date.date().isoformat(), "2024-06-01")

    def test_text_salary_kept_as_string(self):
        content = json.dumps({"title": "Dev", "salary": "do 20k", "skills": None})
        with patch("job_ingest.normalizer.requests.post", return_value=_reply(content)):
            data = self.normalizer.normalize(RAW)
        self.assertEqual(data.salary, "do 20k")
        self.assertEqual(data.skills, [])

    def test_unparseable_reply_returns_none(self):
        with patch("job_ingest.normalizer.requests.post", return_value=_reply("I cannot help")):
            self.assertIsNone(self.normalizer.normalize(RAW))

    def test_empty_reply_returns_none(self):
        with patch("job_ingest.normalizer.requests.post", return_value=_reply("  ")):
            self.assertIsNone(self.normalizer.normalize(RAW))

    def test_missing_title_returns_none(self):
        with patch("job_ingest.normalizer.requests.post", return_value=_reply('{"company": "Acme"}')):
            self.assertIsNone(self.normalizer.normalize(RAW))

    def test_transport_error_returns_none(self):
        with patch(
            "job_ingest.normalizer.requests.post",
            side_effect=requests.ConnectionError("refused"),
        ):
            self.assertIsNone(self.normalizer.normalize(RAW))

    def test_api_key_header(self):
        with patch.dict("os.environ", {"TEST_NORMALIZER_KEY": "secret"}):
            self.assertEqual(self.normalizer._headers()["Authorization"], "Bearer secret")
        with patch.dict("os.environ", {}, clear=True):
            self.assertNotIn("Authorization", self.normalizer._headers())


if __name__ == "__main__":
    unittest.main()
