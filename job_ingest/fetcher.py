"""HTML fetch, link and text extraction, link canonicalization."""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import requests
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from .config import FetchConfig

logger = logging.getLogger(__name__)

_SKIP_TAGS = {"script", "style", "noscript", "svg", "head"}

_TRACKING_PARAMS = {"ref", "refid", "trk", "source", "searchid", "sug", "s"}


class _TextExtractor(HTMLParser):
    """Simple HTML → plain text extractor."""

    def __init__(self):
        super().__init__()
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs):
        if tag.lower() in _SKIP_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag: str):
        if tag.lower() in _SKIP_TAGS and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data: str):
        if self._skip_depth == 0:
            self._parts.append(data)

    def get_text(self) -> str:
        return clean_text(" ".join(self._parts))


class _LinkExtractor(HTMLParser):
    """Collect (href, anchor text) pairs."""

    def __init__(self):
        super().__init__()
        self.links: list[tuple[str, str]] = []
        self._href: str | None = None
        self._text: list[str] = []

    def handle_starttag(self, tag: str, attrs):
        if tag.lower() != "a":
            return
        href = dict(attrs).get("href")
        if href:
            self._href = href.strip()
            self._text = []

    def handle_endtag(self, tag: str):
        if tag.lower() == "a" and self._href is not None:
            self.links.append((self._href, clean_text(" ".join(self._text))))
            self._href = None

    def handle_data(self, data: str):
        if self._href is not None:
            self._text.append(data)


def clean_text(text: str | None) -> str:
    """Collapse whitespace runs and trim."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3] + "..."


def html_to_text(html: str) -> str:
    extractor = _TextExtractor()
    extractor.feed(html)
    return extractor.get_text()


def extract_links(html: str, page_url: str) -> list[tuple[str, str]]:
    """Return absolute, canonical (link, anchor text) pairs in document order."""
    extractor = _LinkExtractor()
    extractor.feed(html)
    out = []
    for href, text in extractor.links:
        if href.startswith(("#", "mailto:", "javascript:", "tel:")):
            continue
        out.append((canonicalize_link(urljoin(page_url, href)), text))
    return out


def canonicalize_link(url: str) -> str:
    """Normalize posting URLs so the link key is stable across runs."""
    if not url:
        return url

    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        return url.strip()

    host = parsed.netloc.lower()
    if host.startswith("www."):
        host = host[4:]

    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/")

    pairs = []
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        lk = key.lower()
        if lk in _TRACKING_PARAMS or lk.startswith("utm_"):
            continue
        pairs.append((key, value))

    normalized = parsed._replace(
        scheme=parsed.scheme.lower(),
        netloc=host,
        path=path,
        params="",
        query=urlencode(pairs, doseq=True),
        fragment="",
    )
    return urlunparse(normalized)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


def fetch_html(url: str, config: FetchConfig) -> str:
    """GET a page, retrying transient failures. Raises once retries run out."""
    for attempt in Retrying(
        stop=stop_after_attempt(config.max_retries + 1),
        wait=wait_exponential(multiplier=1, min=1, max=16),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    ):
        with attempt:
            resp = requests.get(
                url,
                headers={"User-Agent": config.user_agent},
                timeout=config.timeout,
                allow_redirects=True,
            )
            resp.raise_for_status()
            return resp.text
    raise AssertionError("unreachable")  # pragma: no cover


def fetch_page_text(url: str, config: FetchConfig, max_chars: int) -> str:
    """Fetch a posting page and return its visible text, or "" on failure."""
    try:
        text = html_to_text(fetch_html(url, config))
    except Exception as e:
        logger.warning("Failed to fetch description from %s: %s", url, e)
        return ""
    return truncate(text, max_chars)
