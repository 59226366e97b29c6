"""Markdown deck renderer."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from content_normalizer import expand_pages
from file_utils import write_text
from models import ChartSpec, ContentPackage

from .base import BaseRenderer
from .templates import render_markdown


def _format_value(value: float) -> str:
    return f"{value:g}"


def _chart_context(spec: ChartSpec) -> Dict[str, Any]:
    return {
        "title": spec.title,
        "kind": spec.kind,
        "rows": [(label, _format_value(value)) for label, value in zip(spec.labels, spec.values)],
    }


class MarkdownDeckRenderer(BaseRenderer):
    """Write the slide package as a single readable markdown file."""

    name = "markdown"

    def build_context(self, package: ContentPackage) -> Dict[str, Any]:
        slides = []
        for number, slide in enumerate(package.slides, start=1):
            slides.append(
                {
                    "number": number,
                    "title": slide.title,
                    "subtitle": slide.subtitle,
                    "bullets": slide.bullets,
                    "pages": expand_pages(slide),
                    "chart": _chart_context(slide.chart_spec) if slide.chart_spec else None,
                }
            )
        return {
            "title": package.title,
            "prompt": package.prompt,
            "slides": slides,
            "appendix_charts": [
                _chart_context(chart.spec) for chart in package.charts if chart.slide_index is None
            ],
            "sources": package.sources,
        }

    def render(self, package: ContentPackage, output_dir: str) -> List[str]:
        if not package.slides:
            raise ValueError("Package has no slides to render.")
        output_path = Path(output_dir) / "deck.md"
        write_text(output_path, render_markdown(self.build_context(package)))
        return [str(output_path)]
