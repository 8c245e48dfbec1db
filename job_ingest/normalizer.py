"""LLM-based normalization of raw postings via an OpenAI-compatible server."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Optional

import requests
from pydantic import ValidationError

from .config import NormalizerConfig
from .fetcher import truncate
from .models import NormalizedJobData, RawJobOffer

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a strict information extractor. Output only valid JSON matching the "
    "provided shape. If a field is missing in the source, use null or an empty "
    "array as appropriate. Do not invent data."
)

_OUTPUT_SHAPE = """\
{
  "title": "string",
  "link": "string",
  "salary": "string" | {"min": number, "max": number, "currency": "string",
                        "period": "monthly" | "yearly" | "hourly",
                        "grossNet": "gross" | "net" | "unspecified"} | null,
  "years_experience": number | "string" | null,
  "skills": ["string"],
  "company": "string" | null,
  "location": "string" | null,
  "source": "string",
  "posted_date": "ISO 8601 date or datetime" | null,
  "expiration_date": "ISO 8601 date or datetime" | null
}"""

_RULES = """\
Rules:
- Parse salary ranges and currency when possible; otherwise return the original salary text as a string.
- Infer years of experience from phrases like "2+ years"; if unclear, null.
- Extract skills as canonical technology names (e.g. "Python", "SQL", "AWS").
- Dates in ISO 8601 (YYYY-MM-DD, a time is allowed).
- Return JSON only."""


def build_prompt(raw: RawJobOffer, description_max_chars: int) -> str:
    return (
        f"SourceSite: {raw.source.value}\n"
        f"URL: {raw.link}\n\n"
        "RawFields:\n"
        f"Title: {raw.title}\n"
        f"Company: {raw.company or ''}\n"
        f"Location: {raw.location or ''}\n"
        f"SalaryText: {raw.salary_text or ''}\n"
        f"ExpirationText: {raw.expiration_text or ''}\n"
        f"PostedText: {raw.posted_text or ''}\n\n"
        f"Description:\n{truncate(raw.description, description_max_chars)}\n\n"
        f"Output JSON shape:\n{_OUTPUT_SHAPE}\n\n"
        f"{_RULES}"
    )


def _extract_json(text: str) -> Optional[dict]:
    """Pull the first JSON object out of a reply. Strips <think> tags and code fences."""
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()
    text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text).strip()
    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else None
    except json.JSONDecodeError:
        pass
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class LLMNormalizer:
    """Turn a RawJobOffer into NormalizedJobData, or None when that fails."""

    def __init__(self, config: NormalizerConfig):
        self.config = config

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = os.environ.get(self.config.api_key_env, "")
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def normalize(self, raw: RawJobOffer) -> Optional[NormalizedJobData]:
        try:
            resp = requests.post(
                self.config.url,
                headers=self._headers(),
                json={
                    "model": self.config.model,
                    "messages": [
                        {"role": "system", "content": _SYSTEM_PROMPT},
                        {"role": "user", "content": build_prompt(raw, self.config.description_max_chars)},
                    ],
                    "temperature": 0.0,
                },
                timeout=self.config.timeout,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except Exception as exc:
            logger.warning("Normalizer request failed for %s: %s", raw.link, exc)
            return None

        if not content or not content.strip():
            logger.warning("Empty normalizer response for %s", raw.link)
            return None
        logger.debug("Normalizer raw response for %s: %s", raw.link, content[:300])

        data = _extract_json(content)
        if data is None:
            logger.warning("Could not parse normalizer response for %s: %r", raw.link, content[:200])
            return None

        data["link"] = raw.link
        if not data.get("source"):
            data["source"] = raw.source.value
        try:
            return NormalizedJobData.model_validate(data)
        except ValidationError as exc:
            logger.warning("Normalizer output invalid for %s: %s", raw.link, exc.errors()[:3])
            return None
