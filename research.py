"""First-pass research: query generation, broaden-on-empty, context synthesis."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Sequence

from config import DeckConfig
from harvest import VettedSourceSet, render_axis_query
from models import CandidateSource
from search_client import run_queries
from source_vetting import SourceVetter

logger = logging.getLogger(__name__)


def base_query(prompt: str) -> str:
    return " ".join((prompt or "").split())


def generate_search_queries(prompt: str) -> List[str]:
    base = base_query(prompt)
    if not base:
        return []
    return [render_axis_query(axis, base) for axis in DeckConfig.INITIAL_QUERY_AXES]


def broaden_queries(prompt: str, original: Sequence[str]) -> List[str]:
    """Keep the first two originals and add general-audience variants."""
    base = base_query(prompt)
    broadened = list(original[:2]) + [render_axis_query(axis, base) for axis in DeckConfig.BROADEN_QUERY_AXES]
    return list(dict.fromkeys(broadened))


def first_pass(
    prompt: str,
    searcher,
    vetter: SourceVetter,
    sources: VettedSourceSet,
    max_workers: int = DeckConfig.SEARCH_CONCURRENCY,
) -> int:
    """Search the initial queries, broaden once if nothing came back, vet everything."""
    queries = generate_search_queries(prompt)
    batches = run_queries(searcher.search, queries, max_workers)
    if not any(results for _, results in batches):
        broadened = broaden_queries(prompt, queries)
        logger.info("Initial search returned nothing; broadening to %d queries", len(broadened))
        batches = run_queries(searcher.search, broadened, max_workers)
    before = len(sources)
    for query, results in batches:
        for candidate in results:
            sources.consider(candidate, vetter, query=query)
    added = len(sources) - before
    logger.info("First pass vetted %d source(s)", added)
    return added


def _blurb(candidate: CandidateSource, text: str) -> str:
    body = (text or "").strip()
    if body:
        return body[: DeckConfig.CONTEXT_BLURB_CHARS]
    return candidate.snippet or ""


def gather_research_context(
    results_by_query: Dict[str, List[CandidateSource]],
    fetch_text: Callable[[str], str],
    max_urls: int = DeckConfig.CONTEXT_MAX_URLS,
    fetch_limit: int = DeckConfig.CONTEXT_FETCH_LIMIT,
    max_chars: int = DeckConfig.CONTEXT_MAX_CHARS,
    max_workers: int = DeckConfig.FETCH_CONCURRENCY,
) -> str:
    """Build the outline generator's research brief from the vetted results."""
    picked: List[CandidateSource] = []
    seen: set[str] = set()
    for results in results_by_query.values():
        for candidate in results:
            if candidate.url in seen:
                continue
            seen.add(candidate.url)
            picked.append(candidate)
            if len(picked) >= max_urls:
                break
        if len(picked) >= max_urls:
            break
    if not picked:
        return ""

    def _safe_fetch(url: str) -> str:
        try:
            return fetch_text(url) or ""
        except Exception as exc:
            logger.debug("Context fetch failed for %s: %s", url, exc)
            return ""

    to_fetch = picked[:fetch_limit]
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        texts = list(pool.map(_safe_fetch, [c.url for c in to_fetch]))
    texts.extend([""] * (len(picked) - len(to_fetch)))

    blocks = []
    for candidate, text in zip(picked, texts):
        title = candidate.title or candidate.url
        blocks.append(f"Source: {title}\nURL: {candidate.url}\nSummary: {_blurb(candidate, text)}")
    return "\n\n".join(blocks)[:max_chars]
