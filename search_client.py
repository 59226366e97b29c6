"""
Search and page-text collaborators.

``SearchClient.search`` walks a provider chain (SearXNG or Tavily, then the
DuckDuckGo HTML endpoint, then Wikipedia opensearch) and returns candidate
sources; ``fetch_text`` pulls readable page text through a bounded cache.
``run_queries`` fans a query list out over a small thread pool and folds the
results back in input order.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlsplit

import requests
from bs4 import BeautifulSoup
from tavily import TavilyClient

from bounded_cache import BoundedCache
from config import DeckConfig
from models import CandidateSource

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], List[CandidateSource]]


def _is_web_url(url: str) -> bool:
    return isinstance(url, str) and url.startswith(("http://", "https://"))


def _dedupe(results: List[CandidateSource], limit: int) -> List[CandidateSource]:
    seen: set[str] = set()
    unique: List[CandidateSource] = []
    for result in results:
        if not _is_web_url(result.url) or result.url in seen:
            continue
        seen.add(result.url)
        unique.append(result)
        if len(unique) >= limit:
            break
    return unique


def run_queries(
    search: SearchFn, queries: Sequence[str], max_workers: int = DeckConfig.SEARCH_CONCURRENCY
) -> List[Tuple[str, List[CandidateSource]]]:
    """Search every query with bounded parallelism; output follows ``queries`` order."""
    if not queries:
        return []

    def _safe(query: str) -> List[CandidateSource]:
        try:
            return list(search(query) or [])
        except Exception as exc:
            logger.warning("Search failed for %r: %s", query, exc)
            return []

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = [pool.submit(_safe, query) for query in queries]
        return [(query, future.result()) for query, future in zip(queries, futures)]


class SearchClient:
    """Concrete search provider plus page-text fetcher."""

    def __init__(
        self,
        provider: Optional[str] = None,
        tavily_api_key: str = "",
        session: Optional[requests.Session] = None,
        max_results: int = DeckConfig.MAX_RESULTS_PER_QUERY,
        timeout: float = DeckConfig.HTTP_TIMEOUT_SECONDS,
        text_cache: Optional[BoundedCache] = None,
        trace_mode: bool = False,
    ):
        self.provider = (provider or DeckConfig.SEARCH_PROVIDER).lower()
        self.session = session
        if self.session is not None:
            self.session.headers.setdefault("User-Agent", DeckConfig.USER_AGENT)
        self._local = threading.local()
        self.max_results = max_results
        self.timeout = timeout
        self.text_cache = text_cache if text_cache is not None else BoundedCache(DeckConfig.TEXT_CACHE_SIZE)
        self.trace_mode = trace_mode
        if self.provider == "tavily" and tavily_api_key:
            self.tavily_client = TavilyClient(api_key=tavily_api_key)
        else:
            self.tavily_client = None

    def _session(self) -> requests.Session:
        """Injected session, else one ``requests.Session`` per worker thread."""
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = DeckConfig.USER_AGENT
            self._local.session = session
        return session

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def search(self, query: str) -> List[CandidateSource]:
        primary = self._search_tavily if self.tavily_client is not None else self._search_searxng
        chain = [
            ("primary", primary),
            ("duckduckgo", self._search_duckduckgo),
            ("wikipedia", self._search_wikipedia),
        ]
        for name, provider in chain:
            try:
                results = _dedupe(provider(query), self.max_results)
            except Exception as exc:
                logger.warning("%s search failed for %r: %s", name, query, exc)
                continue
            self._trace(f"search:{name}", {"query": query, "result_count": len(results)})
            if results:
                return results
        logger.info("No search results for %r", query)
        return []

    def _search_searxng(self, query: str) -> List[CandidateSource]:
        base = DeckConfig.SEARXNG_BASE_URL.rstrip("/")
        params = {"q": query, "format": "json", "safesearch": 1}
        resp = self._session().get(f"{base}/search", params=params, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        return [
            CandidateSource(url=item.get("url") or "", title=item.get("title"), snippet=item.get("content"))
            for item in (data.get("results") or [])
            if isinstance(item, dict)
        ]

    def _search_tavily(self, query: str) -> List[CandidateSource]:
        response = self.tavily_client.search(
            query=query,
            search_depth="advanced",
            max_results=self.max_results,
            include_answer=False,
        )
        return [
            CandidateSource(url=item.get("url") or "", title=item.get("title"), snippet=item.get("content"))
            for item in (response.get("results") or [])
            if isinstance(item, dict)
        ]

    def _search_duckduckgo(self, query: str) -> List[CandidateSource]:
        resp = self._session().get(DeckConfig.DUCKDUCKGO_HTML_URL, params={"q": query}, timeout=self.timeout)
        resp.raise_for_status()
        return parse_duckduckgo_html(resp.text)

    def _search_wikipedia(self, query: str) -> List[CandidateSource]:
        params = {
            "action": "opensearch",
            "search": query,
            "limit": self.max_results,
            "namespace": 0,
            "format": "json",
        }
        resp = self._session().get(DeckConfig.WIKIPEDIA_API_URL, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return parse_opensearch(resp.json())

    # ------------------------------------------------------------------
    # Page text
    # ------------------------------------------------------------------
    def fetch_text(self, url: str) -> str:
        if not _is_web_url(url):
            return ""
        cached = self.text_cache.get(url)
        if cached is not None:
            return cached
        try:
            resp = self._session().get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.debug("fetch_text failed for %s: %s", url, exc)
            return ""
        text = extract_page_text(resp.text)
        self.text_cache.put(url, text)
        return text

    def _trace(self, label: str, payload: Any = None) -> None:
        emit = self.trace_mode or logger.isEnabledFor(logging.DEBUG)
        if not emit:
            return
        target = logger.info if self.trace_mode else logger.debug
        target("[TRACE] %s: %s", label, json.dumps(payload, ensure_ascii=False))


def extract_page_text(html: str, max_chars: int = DeckConfig.PAGE_TEXT_MAX_CHARS) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(DeckConfig.PAGE_NOISE_TAGS):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(separator=" ", strip=True)).strip()
    return text[:max_chars]


def _unwrap_duckduckgo(href: str) -> str:
    if not href:
        return ""
    if href.startswith("//"):
        href = "https:" + href
    parts = urlsplit(href)
    if "duckduckgo.com" in parts.netloc and parts.path.startswith("/l/"):
        target = parse_qs(parts.query).get("uddg")
        return target[0] if target else ""
    return href


def parse_duckduckgo_html(html: str) -> List[CandidateSource]:
    soup = BeautifulSoup(html or "", "html.parser")
    results: List[CandidateSource] = []
    for block in soup.select(".result"):
        link = block.select_one("a.result__a")
        if link is None:
            continue
        url = _unwrap_duckduckgo(link.get("href", ""))
        snippet_node = block.select_one(".result__snippet")
        results.append(
            CandidateSource(
                url=url,
                title=link.get_text(" ", strip=True),
                snippet=snippet_node.get_text(" ", strip=True) if snippet_node else "",
            )
        )
    return results


def parse_opensearch(payload: Any) -> List[CandidateSource]:
    if not isinstance(payload, list) or len(payload) < 4:
        return []
    titles, descriptions, urls = payload[1], payload[2], payload[3]
    results: List[CandidateSource] = []
    for idx, url in enumerate(urls or []):
        title = titles[idx] if idx < len(titles) else ""
        snippet = descriptions[idx] if idx < len(descriptions) else ""
        results.append(CandidateSource(url=url, title=title, snippet=snippet or title))
    return results
