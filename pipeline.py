"""
Task-scoped orchestration: research, harvest, outline, normalize, gate.

One ``ContentPipeline.build`` call is one task. It owns its vetted-source set,
its content normalizer and its chart state; the only shared object is the
searcher's page-text cache.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from chart_gate import ChartGate
from config import DeckConfig
from content_normalizer import ContentNormalizer
from harvest import HarvestCoordinator, VettedSourceSet
from models import ContentPackage, Outline
from research import first_pass, gather_research_context
from source_vetting import SourceVetter, normalize_url

logger = logging.getLogger(__name__)


class ContentPipeline:
    """Single-path builder from a free-text request to a ``ContentPackage``."""

    def __init__(
        self,
        searcher: Any,
        outline_generator: Any,
        vetter: Optional[SourceVetter] = None,
        fetch_rows: Optional[Callable[[str], List[Dict[str, Any]]]] = None,
        min_sources: int = DeckConfig.MIN_VETTED_SOURCES,
        min_slides: int = DeckConfig.MIN_SLIDES,
        max_charts: int = DeckConfig.MAX_CHARTS,
        trace_mode: bool = False,
    ):
        self.searcher = searcher
        self.outline_generator = outline_generator
        self.vetter = vetter or SourceVetter()
        self.fetch_rows = fetch_rows
        self.min_sources = min_sources
        self.min_slides = min_slides
        self.max_charts = max_charts
        self.trace_mode = trace_mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def build(self, prompt: str) -> ContentPackage:
        self._trace("build:start", {"prompt": prompt, "min_sources": self.min_sources})
        sources = VettedSourceSet()
        first_pass(prompt, self.searcher, self.vetter, sources)

        coordinator = HarvestCoordinator(
            self.searcher, self.vetter, min_required=self.min_sources, trace_mode=self.trace_mode
        )
        # Raises InsufficientSourcesError before any outline or render work.
        harvest = coordinator.harvest(prompt, sources)

        fetch_text = getattr(self.searcher, "fetch_text", None) or (lambda _url: "")
        context = gather_research_context(sources.results_by_query, fetch_text)
        self._trace("research:context", {"chars": len(context), "sources": len(sources)})

        outline: Outline = self.outline_generator.generate(prompt, context)
        normalizer = ContentNormalizer()
        slides = normalizer.normalize_outline(outline.slides, min_slides=self.min_slides)

        gate = ChartGate(max_charts=self.max_charts, fetch_rows=self.fetch_rows)
        charts = gate.gate_document(slides)
        self._trace(
            "charts:admitted",
            [{"slide": chart.slide_index, "title": chart.spec.title, "synthetic": chart.synthetic} for chart in charts],
        )

        package = ContentPackage(
            title=self._title(outline, prompt),
            prompt=prompt,
            slides=slides,
            charts=charts,
            sources=list(sources.vetted),
            outline_sources=self._outline_sources(outline, sources.vetted),
            harvest_rounds=harvest.rounds,
            rigorous=harvest.rigorous,
            metadata={"required_sources": self.min_sources},
        )
        logger.info(
            "Built package: %d slides, %d charts, %d vetted sources",
            len(package.slides),
            len(package.charts),
            len(package.sources),
        )
        return package

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _title(self, outline: Outline, prompt: str) -> str:
        cleaned = re.sub(r"\s+", " ", (outline.title or prompt or "Research Deck").strip())
        return cleaned or "Research Deck"

    def _outline_sources(self, outline: Outline, vetted: List[str]) -> List[str]:
        known = set(vetted)
        extra: List[str] = []
        for url in outline.sources:
            key = normalize_url(url)
            if key and key not in known:
                known.add(key)
                extra.append(key)
        return extra

    def _trace(self, label: str, payload: Any = None) -> None:
        emit = self.trace_mode or logger.isEnabledFor(logging.DEBUG)
        if not emit:
            return
        target = logger.info if self.trace_mode else logger.debug
        if payload is None:
            target("[TRACE] %s", label)
            return
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            serialized = str(payload)
        max_len = 4000
        if len(serialized) > max_len:
            serialized = serialized[: max_len - 3] + "..."
        target("[TRACE] %s: %s", label, serialized)
