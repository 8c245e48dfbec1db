"""Configured listing scrapers, one per job board."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Callable, Optional
from urllib.parse import parse_qsl, quote_plus, urlencode, urlparse, urlunparse

from .config import FetchConfig, IngestConfig, SourceSettings
from .fetcher import extract_links, fetch_html, fetch_page_text
from .models import JobSearchCriteria, JobSource, RawJobOffer

logger = logging.getLogger(__name__)


class SourceUnavailableError(RuntimeError):
    """No search page of a source could be fetched."""


async def _render_async(url: str, timeout_ms: int) -> str:
    from crawl4ai import AsyncWebCrawler, CrawlerRunConfig

    run_config = CrawlerRunConfig(wait_until="networkidle", page_timeout=timeout_ms)
    async with AsyncWebCrawler() as crawler:
        result = await crawler.arun(url=url, config=run_config)
    if not result.success:
        raise RuntimeError(f"render failed for {url}: {result.error_message}")
    return result.html


def render_with_browser(url: str, config: FetchConfig) -> str:
    """Render a JavaScript-driven page through Crawl4AI and return its HTML."""
    return asyncio.run(_render_async(url, config.timeout * 1000))


def build_search_url(
    template: str, query: str, location: Optional[str], criteria: JobSearchCriteria
) -> str:
    seniority = ",".join(s.value for s in criteria.seniorities or [])
    url = template.format(
        query=quote_plus(query),
        location=quote_plus(location or ""),
        seniority=quote_plus(seniority, safe=","),
    )
    # Drop parameters left empty by optional criteria
    parsed = urlparse(url)
    pairs = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if v]
    return urlunparse(parsed._replace(query=urlencode(pairs, safe=",")))


def _title_from_link(link: str) -> str:
    tail = urlparse(link).path.rstrip("/").rsplit("/", 1)[-1]
    return tail.replace("-", " ").strip()


class ListingScraper:
    """Scrape one board by following posting links on its search pages.

    The board is described entirely by ``SourceSettings``: a search URL
    template, a regex identifying posting links, and whether pages need a
    browser to render. No markup selectors are involved; titles come from
    anchor text and descriptions from the posting page's visible text.
    """

    def __init__(
        self,
        settings: SourceSettings,
        fetch: FetchConfig,
        default_max_per_site: int = 50,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.fetch = fetch
        self.default_max_per_site = default_max_per_site
        self._link_re = re.compile(settings.link_pattern)
        self._sleep = sleep

    @property
    def source(self) -> JobSource:
        return self.settings.source

    def _get_page(self, url: str) -> str:
        if self.settings.render == "browser":
            return render_with_browser(url, self.fetch)
        return fetch_html(url, self.fetch)

    def scrape(self, criteria: JobSearchCriteria) -> list[RawJobOffer]:
        cap = criteria.max_per_site or self.default_max_per_site
        locations = criteria.locations or [None]
        pages = [(t, loc) for t in criteria.titles if t.strip() for loc in locations]

        found: dict[str, str] = {}
        fetched = 0
        for i, (title, location) in enumerate(pages):
            if len(found) >= cap:
                break
            url = build_search_url(self.settings.search_url, title, location, criteria)
            logger.debug("%s search %d/%d: %s", self.source.value, i + 1, len(pages), url)
            try:
                html = self._get_page(url)
            except Exception as e:
                logger.error("%s search failed [%s]: %s", self.source.value, url, e)
                continue
            fetched += 1

            new = 0
            for link, text in extract_links(html, url):
                if len(found) >= cap:
                    break
                if link in found or not self._link_re.search(link):
                    continue
                found[link] = text or _title_from_link(link)
                new += 1
            logger.info("%s: %d new links for '%s'", self.source.value, new, title)

            if i < len(pages) - 1:
                self._sleep(self.settings.request_delay)

        if pages and fetched == 0:
            raise SourceUnavailableError(f"{self.source.value}: all {len(pages)} search pages failed")

        offers = []
        for link, title in found.items():
            description = ""
            if self.settings.fetch_details:
                description = fetch_page_text(link, self.fetch, self.settings.description_max_chars)
            offers.append(
                RawJobOffer(title=title, link=link, source=self.source, description=description)
            )
        return offers


def build_scrapers(config: IngestConfig) -> list[ListingScraper]:
    """One scraper per enabled source, in configured order."""
    return [
        ListingScraper(s, config.fetch, config.pipeline.default_max_per_site)
        for s in config.enabled_sources()
    ]
