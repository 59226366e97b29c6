"""
Iterative research harvesting.

Supplementary search happens in a fixed list of rounds (seeds, topical,
scholarly, extension, synonyms). Each round is a ``RoundDescriptor``; the
coordinator loops over them until the vetted-source floor is met, and raises
``InsufficientSourcesError`` when a rigorous task ends below the floor.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from config import DeckConfig
from models import CandidateSource, HarvestRoundRecord
from search_client import run_queries
from source_vetting import SourceVetter, VettingDecision, normalize_url, summarize_decisions

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[a-z0-9]+")


class InsufficientSourcesError(RuntimeError):
    """Raised when a rigorous task cannot reach its vetted-source floor."""

    def __init__(self, achieved: int, required: int, rounds_completed: Sequence[str]):
        self.achieved = achieved
        self.required = required
        self.rounds_completed = list(rounds_completed)
        rounds = ", ".join(self.rounds_completed) or "none"
        super().__init__(
            f"Insufficient sources for report: {achieved}/{required} vetted. "
            f"Completed rounds: {rounds}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "achieved": self.achieved,
            "required": self.required,
            "rounds_completed": self.rounds_completed,
        }


def prompt_tokens(prompt: str) -> set[str]:
    return set(_TOKEN.findall((prompt or "").lower()))


def requires_rigorous_sourcing(prompt: str, terms: Optional[Sequence[str]] = None) -> bool:
    terms = terms if terms is not None else DeckConfig.RIGOROUS_INTENT_TERMS
    return bool(prompt_tokens(prompt) & {term.lower() for term in terms})


def render_axis_query(template: str, query: str) -> str:
    cleaned = (template or "").strip()
    if "{query}" in cleaned:
        return cleaned.replace("{query}", query).strip()
    return f"{query} {cleaned}".strip()


def _matched_packs(prompt: str, packs: Dict[str, List[str]]) -> List[str]:
    tokens = prompt_tokens(prompt)
    matched: List[str] = []
    for key in packs:
        aliases = DeckConfig.TOPICAL_PACK_ALIASES.get(key, [key])
        if tokens & {alias.lower() for alias in aliases}:
            matched.append(key)
    return matched


def _unique(items: Sequence[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            ordered.append(item.strip())
    return ordered


# ----------------------------------------------------------------------
# Round query/seed generators
# ----------------------------------------------------------------------
def seed_references(prompt: str) -> List[CandidateSource]:
    tokens = prompt_tokens(prompt)
    seeds: List[CandidateSource] = []
    for ref in DeckConfig.SEED_REFERENCES:
        keywords = {str(word).lower() for word in ref.get("keywords", [])}
        if tokens & keywords:
            seeds.append(CandidateSource(url=str(ref["url"]), title=str(ref["title"]), snippet="Curated reference"))
    return seeds


def topical_queries(prompt: str) -> List[str]:
    queries: List[str] = []
    for key in _matched_packs(prompt, DeckConfig.TOPICAL_QUERY_PACKS):
        queries.extend(DeckConfig.TOPICAL_QUERY_PACKS[key])
    if not queries:
        queries = [render_axis_query(axis, prompt) for axis in DeckConfig.TOPICAL_QUERY_AXES]
    return _unique(queries)


def scholar_queries(prompt: str) -> List[str]:
    templates = list(DeckConfig.SCHOLAR_QUERY_AXES)
    for key in _matched_packs(prompt, DeckConfig.SCHOLAR_TOPIC_SITES):
        templates.extend(DeckConfig.SCHOLAR_TOPIC_SITES[key])
    return _unique([render_axis_query(template, prompt) for template in templates])


def extension_queries(prompt: str) -> List[str]:
    return _unique([render_axis_query(axis, prompt) for axis in DeckConfig.EXTENSION_QUERY_AXES])


def synonym_queries(prompt: str) -> List[str]:
    queries: List[str] = []
    lowered = prompt.lower()
    for phrase, substitutes in DeckConfig.SYNONYM_SUBSTITUTIONS.items():
        pattern = re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE)
        if pattern.search(lowered):
            queries.extend(pattern.sub(substitute, prompt) for substitute in substitutes)
    for key in _matched_packs(prompt, DeckConfig.RELATED_TERMS):
        queries.extend(f"{prompt} {suffix}" for suffix in DeckConfig.RELATED_TERMS[key])
    if not queries:
        queries = [render_axis_query(axis, prompt) for axis in DeckConfig.SYNONYM_FALLBACK_AXES]
    return _unique(queries)


def _no_queries(prompt: str) -> List[str]:
    return []


def _no_seeds(prompt: str) -> List[CandidateSource]:
    return []


@dataclass(frozen=True)
class RoundDescriptor:
    tag: str
    description: str
    queries: Callable[[str], List[str]] = _no_queries
    seeds: Callable[[str], List[CandidateSource]] = _no_seeds
    # Trusted rounds skip the vetter; their entries are still de-duplicated.
    trusted: bool = False


def default_rounds() -> List[RoundDescriptor]:
    return [
        RoundDescriptor("R0_seeds", "curated references", seeds=seed_references, trusted=True),
        RoundDescriptor("R1_topical", "topical and broadened queries", queries=topical_queries),
        RoundDescriptor("R2_scholar", "authority-scoped repositories", queries=scholar_queries),
        RoundDescriptor("R3_extension", "extension and government education", queries=extension_queries),
        RoundDescriptor("R4_synonyms", "synonym and related-term expansion", queries=synonym_queries),
    ]


# ----------------------------------------------------------------------
# Task-scoped vetted set
# ----------------------------------------------------------------------
@dataclass
class VettedSourceSet:
    """Vetted URLs for one task, plus every URL already looked at."""

    vetted: List[str] = field(default_factory=list)
    seen: set = field(default_factory=set)
    results_by_query: Dict[str, List[CandidateSource]] = field(default_factory=dict)
    decisions: List[VettingDecision] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.vetted)

    def consider(
        self, candidate: CandidateSource, vetter: SourceVetter, query: str = "", trusted: bool = False
    ) -> bool:
        key = normalize_url(candidate.url)
        if not key or key in self.seen:
            return False
        self.seen.add(key)
        if trusted:
            accepted = True
        else:
            decision = vetter.explain(candidate.url, candidate.title, candidate.snippet)
            self.decisions.append(decision)
            accepted = decision.vetted
        if not accepted:
            return False
        self.vetted.append(key)
        self.results_by_query.setdefault(query, []).append(candidate.model_copy(update={"url": key}))
        return True


@dataclass
class HarvestResult:
    achieved: int
    required: int
    rigorous: bool
    rounds: List[HarvestRoundRecord]

    @property
    def sufficient(self) -> bool:
        return self.achieved >= self.required

    @property
    def rounds_completed(self) -> List[str]:
        return [record.round_id for record in self.rounds]


class HarvestCoordinator:
    """Runs supplementary search rounds until the vetted floor is met."""

    def __init__(
        self,
        searcher: Any,
        vetter: SourceVetter,
        min_required: int = DeckConfig.MIN_VETTED_SOURCES,
        rounds: Optional[List[RoundDescriptor]] = None,
        max_workers: int = DeckConfig.SEARCH_CONCURRENCY,
        trace_mode: bool = False,
    ):
        self.searcher = searcher
        self.vetter = vetter
        self.min_required = min_required
        self.rounds = rounds if rounds is not None else default_rounds()
        self.max_workers = max_workers
        self.trace_mode = trace_mode

    def run_round(self, descriptor: RoundDescriptor, prompt: str, sources: VettedSourceSet) -> HarvestRoundRecord:
        before = len(sources)
        for seed in descriptor.seeds(prompt):
            sources.consider(seed, self.vetter, query=descriptor.tag, trusted=descriptor.trusted)
        queries = descriptor.queries(prompt)
        for query, results in run_queries(self.searcher.search, queries, self.max_workers):
            for candidate in results:
                sources.consider(candidate, self.vetter, query=query, trusted=descriptor.trusted)
        record = HarvestRoundRecord(
            round_id=descriptor.tag,
            queries=queries,
            added_count=len(sources) - before,
            cumulative_vetted_count=len(sources),
        )
        logger.info(
            "Harvest %s: +%d (total %d/%d)",
            descriptor.tag,
            record.added_count,
            record.cumulative_vetted_count,
            self.min_required,
        )
        return record

    def harvest(self, prompt: str, sources: VettedSourceSet) -> HarvestResult:
        rigorous = requires_rigorous_sourcing(prompt)
        records: List[HarvestRoundRecord] = []
        if rigorous:
            for descriptor in self.rounds:
                if len(sources) >= self.min_required:
                    break
                records.append(self.run_round(descriptor, prompt, sources))
        result = HarvestResult(
            achieved=len(sources), required=self.min_required, rigorous=rigorous, rounds=records
        )
        self._trace(
            "harvest:complete",
            {
                "achieved": result.achieved,
                "required": result.required,
                "rigorous": rigorous,
                "rounds": result.rounds_completed,
                "vetting": summarize_decisions(sources.decisions),
            },
        )
        if rigorous and not result.sufficient:
            raise InsufficientSourcesError(result.achieved, result.required, result.rounds_completed)
        return result

    def _trace(self, label: str, payload: Any = None) -> None:
        emit = self.trace_mode or logger.isEnabledFor(logging.DEBUG)
        if not emit:
            return
        target = logger.info if self.trace_mode else logger.debug
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            serialized = str(payload)
        if len(serialized) > 4000:
            serialized = serialized[:3997] + "..."
        target("[TRACE] %s: %s", label, serialized)
